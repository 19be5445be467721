# -*- coding: utf-8 -*-
from collections import OrderedDict
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from vault_repo_types import PATH_SEPARATOR, SecretBackendError
from .secret_backend import SecretStorageBackend
import logging


logger = logging.getLogger(__name__)


SECRET_STORE_PREFIX = 'secret_store/v1/'


def _parse_ts(v: object) -> str:
    # Accept both legacy float epoch and ISO strings
    if v is None:
        return ''
    if isinstance(v, (int, float)):
        return datetime.fromtimestamp(float(v), tz=timezone.utc).replace(microsecond=0).isoformat().replace('+00:00', 'Z')
    if isinstance(v, str):
        return v
    return f'Invalid timestamp type: {type(v)}'


def _now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace('+00:00', 'Z')


@dataclass
class SecretRecord:
    path: str
    version: int
    data: Dict[str, Any]
    created: str = ''
    updated: str = ''

    def to_json(self) -> Dict[str, Any]:
        return OrderedDict([
            ('version', self.version),
            ('created', self.created),
            ('updated', self.updated),
            ('data', self.data),
        ])

    @staticmethod
    def from_json(path: str, payload: Dict[str, Any]) -> 'SecretRecord':
        version = int(payload.get('version', 1))
        created = _parse_ts(payload.get('created', ''))
        updated = _parse_ts(payload.get('updated', ''))
        data = payload.get('data', {})
        if not isinstance(data, dict):
            raise SecretBackendError(f'Secret data at {path!r} must be a JSON object')
        return SecretRecord(path, version, data, created, updated)


class SecretStoreKV(SecretStorageBackend):
    """
    Secret store on top of a flat KV store.

    `kv` must provide get_store(key), set_store(key, value_or_None) and
    get_store_prefix(prefix) -> {key: value}, e.g. a mgr module.

    Keys are stored under:
      secret_store/v1/<collection>/<key>
    """

    def __init__(self, kv: Any):
        self.kv = kv

    def _kv_key(self, path: str) -> str:
        p = path.strip(PATH_SEPARATOR)
        if not p:
            raise ValueError('secret path must not be empty')
        return f'{SECRET_STORE_PREFIX}{p}'

    def get_record(self, path: str) -> Optional[SecretRecord]:
        k = self._kv_key(path)
        raw = self.kv.get_store(k)
        if raw is None:
            return None
        try:
            payload = json.loads(str(raw))
        except ValueError as e:
            raise SecretBackendError(f'Invalid secret payload in store for {k}: {e}') from e
        if not isinstance(payload, dict):
            raise SecretBackendError(f'Invalid secret payload in store for {k}')
        return SecretRecord.from_json(path, payload)

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        rec = self.get_record(path)
        return dict(rec.data) if rec is not None else None

    def put(self, path: str, fields: Dict[str, Any]) -> None:
        existing = self.get_record(path)
        now = _now()
        if existing:
            version = existing.version + 1
            created = existing.created or now
        else:
            version = 1
            created = now
        rec = SecretRecord(path=path, version=version, data=dict(fields), created=created, updated=now)
        self.kv.set_store(self._kv_key(path), json.dumps(rec.to_json()))
        logger.debug('Stored secret %s (version %d)', path, version)

    def delete(self, path: str) -> None:
        self.kv.set_store(self._kv_key(path), None)

    def list(self, prefix: str) -> List[str]:
        base = self._kv_key(prefix) + PATH_SEPARATOR
        items = self.kv.get_store_prefix(base) or {}
        children = set()
        for k in items:
            if not k.startswith(base):
                continue
            # nested paths show up as their first segment only
            child = k[len(base):].split(PATH_SEPARATOR, 1)[0]
            if child:
                children.add(child)
        return sorted(children)
