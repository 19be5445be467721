# -*- coding: utf-8 -*-
import logging
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, Tuple, TypeVar

from vault_repo_types import (
    IncorrectResultSize,
    Limit,
    Order,
    Sort,
    entity_path,
    validate_key,
)
from .comparator import build_comparator
from .converter import EntityConverter
from .query_method import (
    IdEquals,
    IdPrefix,
    QueryMethodDescriptor,
    ResultShape,
)
from .secret_backend import SecretStorageBackend


logger = logging.getLogger(__name__)

T = TypeVar('T')

Row = Tuple[str, Dict[str, Any]]


class QueryExecutor(Generic[T]):
    """
    Runs CRUD operations and derived queries against one collection.

    Only id lookups and id prefixes are pushed to the store (as a point
    read and as a filter over `list` before anything is loaded).
    Ordering and limits are applied in memory. Store errors are not
    caught: retrying is up to the store.
    """

    def __init__(self, store: SecretStorageBackend, collection: str, converter: EntityConverter[T]):
        self.store = store
        self.collection = collection.strip('/')
        self.converter = converter

    def _path(self, key: str) -> str:
        return entity_path(self.collection, key)

    # ---- CRUD ----

    def save(self, entity: T) -> T:
        key = self.converter.get_id(entity)
        self.store.put(self._path(key), self.converter.to_fields(entity))
        return entity

    def save_all(self, entities: Iterable[T]) -> List[T]:
        return [self.save(e) for e in entities]

    def find_by_id(self, key: str) -> Optional[T]:
        fields = self.store.get(self._path(key))
        if fields is None:
            return None
        return self.converter.from_fields(key, fields)

    def exists_by_id(self, key: str) -> bool:
        return self.store.get(self._path(key)) is not None

    def find_all_by_id(self, keys: Iterable[str]) -> List[T]:
        return [self.converter.from_fields(k, f) for k, f in self._load(keys)]

    def count(self) -> int:
        return len(self.store.list(self.collection))

    def delete_by_id(self, key: str) -> None:
        self.store.delete(self._path(key))

    def delete(self, entity: T) -> None:
        self.delete_by_id(self.converter.get_id(entity))

    def delete_all(self, entities: Optional[Iterable[T]] = None) -> None:
        if entities is None:
            keys = self.store.list(self.collection)
        else:
            keys = [self.converter.get_id(e) for e in entities]
        deleted = 0
        for key in keys:
            try:
                self.delete_by_id(key)
            except Exception:
                logger.warning('delete_all on %s stopped after %d of %d entries',
                               self.collection, deleted, len(keys))
                raise
            deleted += 1
        logger.debug('Deleted %d entries from %s', deleted, self.collection)

    # ---- derived queries ----

    def _load(self, keys: Iterable[str]) -> List[Row]:
        rows: List[Row] = []
        for key in keys:
            fields = self.store.get(self._path(key))
            if fields is None:
                # removed between list() and get()
                logger.debug('Skipping vanished entry %s/%s', self.collection, key)
                continue
            rows.append((key, fields))
        return rows

    def _orders(self, descriptor: QueryMethodDescriptor, arguments: Mapping[str, Any]) -> Tuple[Order, ...]:
        if descriptor.sort_param is not None:
            sort = arguments.get(descriptor.sort_param)
            if sort is not None:
                if not isinstance(sort, Sort):
                    raise TypeError(f'{descriptor.method_name}: expected Sort, got {type(sort).__name__}')
                if sort:
                    return sort.orders
        return descriptor.order

    def _limit(self, descriptor: QueryMethodDescriptor, arguments: Mapping[str, Any]) -> Optional[int]:
        if descriptor.limit_param is not None:
            limit = arguments.get(descriptor.limit_param)
            if limit is not None:
                if not isinstance(limit, Limit):
                    limit = Limit(limit)
                return limit.max_results
        return descriptor.limit

    def execute(self, descriptor: QueryMethodDescriptor, arguments: Optional[Mapping[str, Any]] = None) -> Any:
        arguments = arguments or {}
        descriptor.check_executable()

        predicate = descriptor.predicate
        if isinstance(predicate, IdEquals):
            rows = self._load([validate_key(arguments.get(predicate.param))])
        else:
            keys = self.store.list(self.collection)
            if isinstance(predicate, IdPrefix):
                prefix = arguments.get(predicate.param)
                if not isinstance(prefix, str):
                    raise TypeError(f'{descriptor.method_name}: id prefix must be a string, '
                                    f'got {type(prefix).__name__}')
                keys = [k for k in keys if k.startswith(prefix)]
            rows = self._load(keys)

        orders = self._orders(descriptor, arguments)
        limit = self._limit(descriptor, arguments)
        if orders or limit is not None:
            id_attr = self.converter.id_attr
            key_fn = build_comparator(orders, id_attr)
            rows.sort(key=lambda row: key_fn(dict(row[1], **{id_attr: row[1].get(id_attr, row[0])})))
        if limit is not None:
            rows = rows[:limit]

        logger.debug('%s on %s matched %d entries', descriptor.method_name, self.collection, len(rows))

        if descriptor.shape == ResultShape.COUNT:
            return len(rows)
        if descriptor.shape == ResultShape.EXISTS:
            return bool(rows)

        entities = [self.converter.from_fields(k, f) for k, f in rows]
        if descriptor.shape == ResultShape.SINGLE:
            if len(entities) > 1:
                raise IncorrectResultSize(descriptor.method_name, len(entities))
            return entities[0] if entities else None
        return entities
