# PocketAuth HTTP API layer.
# Created: 2026-10-01
#
# Versioned REST endpoints mounted at /api/v1/.
