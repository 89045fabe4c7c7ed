# Resource owner lookup.
# Created: 2026-09-29
#
# User registration and credential checks live in an external service; the
# authorization server only resolves owner ids for the userinfo endpoint.

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol

from pocketauth.oauth2.models import ResourceOwner

logger = logging.getLogger(__name__)


class OwnerDirectory(Protocol):
    def get_owner(self, owner_id: str) -> ResourceOwner | None: ...


class InMemoryOwnerDirectory:
    def __init__(self, owners: list[ResourceOwner] | None = None):
        self._owners: dict[str, ResourceOwner] = {o.id: o for o in owners or []}
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: Path) -> InMemoryOwnerDirectory:
        """Load owners from a JSON list of ``{"id", "email", "name"}`` objects.

        Raises RuntimeError when the file is missing or malformed, so a
        misconfigured server fails at startup instead of answering 404.
        """
        try:
            entries = json.loads(path.read_text())
            owners = [
                ResourceOwner(id=str(e["id"]), email=e["email"], name=e.get("name", ""))
                for e in entries
            ]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            raise RuntimeError(f"Cannot load owners from {path}: {exc}") from exc
        logger.info("Loaded %d resource owner(s) from %s", len(owners), path)
        return cls(owners)

    def add_owner(self, owner: ResourceOwner) -> None:
        with self._lock:
            self._owners[owner.id] = owner

    def remove_owner(self, owner_id: str) -> bool:
        with self._lock:
            return self._owners.pop(owner_id, None) is not None

    def get_owner(self, owner_id: str) -> ResourceOwner | None:
        with self._lock:
            return self._owners.get(owner_id)
