# -*- coding: utf-8 -*-
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Generic, Tuple, Type, TypeVar
from typing_extensions import Protocol

from vault_repo_types import VaultRepositoryException, validate_key


logger = logging.getLogger(__name__)

T = TypeVar('T')


class EntityConverter(Protocol[T]):
    id_attr: str

    def get_id(self, entity: T) -> str:
        ...

    def to_fields(self, entity: T) -> Dict[str, Any]:
        ...

    def from_fields(self, key: str, fields: Dict[str, Any]) -> T:
        ...


class DataclassConverter(Generic[T]):
    """
    Maps dataclass entities to the flat field dict stored in a secret.

    Field names are the dataclass attribute names, so they are the names
    usable in `order_by` clauses and `Sort` orders. The id is stored as a
    regular field as well; on read the key wins if the field is missing.
    """

    def __init__(self, entity_type: Type[T], id_attr: str = 'id'):
        if not dataclasses.is_dataclass(entity_type):
            raise VaultRepositoryException(f'{entity_type!r} is not a dataclass')
        self.entity_type = entity_type
        self.id_attr = id_attr
        if id_attr not in self.field_names:
            raise VaultRepositoryException(
                f'{entity_type.__name__} has no id attribute {id_attr!r}'
            )

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(self.entity_type))

    def get_id(self, entity: T) -> str:
        return validate_key(getattr(entity, self.id_attr, None))

    def to_fields(self, entity: T) -> Dict[str, Any]:
        if not isinstance(entity, self.entity_type):
            raise TypeError(f'Expected {self.entity_type.__name__}, got {type(entity).__name__}')
        return {name: getattr(entity, name) for name in self.field_names}

    def from_fields(self, key: str, fields: Dict[str, Any]) -> T:
        known = set(self.field_names)
        kwargs = {k: v for k, v in fields.items() if k in known}
        unknown = set(fields) - known
        if unknown:
            logger.debug('Ignoring unknown fields %s in secret %r', sorted(unknown), key)
        kwargs.setdefault(self.id_attr, key)
        return self.entity_type(**kwargs)
