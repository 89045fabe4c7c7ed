# Security primitives: signed assertions, rate limiting, audit log.
# Created: 2026-09-28
