# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Any, Dict, List, Optional
from typing_extensions import Protocol


class SecretStorageBackend(Protocol):
    """
    Key-addressed secret store consumed by the repositories.

    Secrets are addressed by path:
      <collection>/<key>

    Only four primitives are available; anything else (filtering on
    fields, ordering, limits) has to be done by the caller.

    Implementations:
      - SecretStoreKV (flat KV store, e.g. the mgr store)
      - (future) Vault KV engine over HTTP
    """

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        ...

    def put(self, path: str, fields: Dict[str, Any]) -> None:
        ...

    def delete(self, path: str) -> None:
        """Deleting a missing path is a no-op."""
        ...

    def list(self, prefix: str) -> List[str]:
        """Sorted immediate child segments of `prefix`; empty when nothing is stored."""
        ...
