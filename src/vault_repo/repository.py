# -*- coding: utf-8 -*-
from __future__ import annotations

import inspect
import logging
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Tuple, Type, TypeVar
from typing_extensions import Protocol

from vault_repo_types import PATH_SEPARATOR, Sort, VaultRepositoryException
from .converter import DataclassConverter, EntityConverter
from .query_executor import QueryExecutor
from .query_method import (
    MatchAll,
    QueryMethodCache,
    QueryMethodDescriptor,
    QueryMethodSignature,
    parse_query_method,
)
from .secret_backend import SecretStorageBackend


logger = logging.getLogger(__name__)

T = TypeVar('T')


class CrudRepository(Protocol[T]):
    """
    Operations every repository provides.

    Declare a sub-protocol with extra method stubs to get derived queries:

        class PersonRepository(CrudRepository[Person], Protocol):
            def find_by_id_starts_with(self, prefix: str) -> List[Person]: ...
    """

    def save(self, entity: T) -> T: ...

    def save_all(self, entities: Iterable[T]) -> List[T]: ...

    def find_by_id(self, id: str) -> Optional[T]: ...

    def exists_by_id(self, id: str) -> bool: ...

    def find_all(self, sort: Optional[Sort] = None) -> List[T]: ...

    def find_all_by_id(self, ids: Iterable[str]) -> List[T]: ...

    def count(self) -> int: ...

    def delete_by_id(self, id: str) -> None: ...

    def delete(self, entity: T) -> None: ...

    def delete_all(self, entities: Optional[Iterable[T]] = None) -> None: ...


CRUD_METHODS = frozenset(
    name for name, v in vars(CrudRepository).items() if callable(v) and not name.startswith('_')
)

_IGNORED_BASES = (object, Generic, Protocol, CrudRepository)


@dataclass(frozen=True)
class RepositoryConfig:
    """
    backend:    mount the collections live under (may be nested, e.g. 'kv/app')
    collection: keyspace of the entity; defaults to the lower-cased entity class name
    id_attr:    entity attribute holding the key
    strict_query_methods: reject methods filtering on non-id properties when the
                repository is created instead of when they are called
    """
    backend: str = 'secret'
    collection: Optional[str] = None
    id_attr: str = 'id'
    strict_query_methods: bool = False

    def __post_init__(self) -> None:
        if not self.backend.strip(PATH_SEPARATOR):
            raise VaultRepositoryException('backend must not be empty')
        if self.collection is not None:
            if not self.collection or PATH_SEPARATOR in self.collection:
                raise VaultRepositoryException(
                    f"collection must be non-empty and must not contain '{PATH_SEPARATOR}': {self.collection!r}"
                )
        if not self.id_attr:
            raise VaultRepositoryException('id_attr must not be empty')

    def collection_path(self, entity_type: type) -> str:
        keyspace = self.collection or entity_type.__name__.lower()
        return f'{self.backend.strip(PATH_SEPARATOR)}{PATH_SEPARATOR}{keyspace}'


def declared_query_methods(interface: type) -> Dict[str, Callable[..., Any]]:
    """Public methods an interface declares beyond CrudRepository."""
    out: Dict[str, Callable[..., Any]] = {}
    for klass in reversed(interface.__mro__):
        if klass in _IGNORED_BASES or klass.__module__ == 'typing':
            continue
        for name, v in vars(klass).items():
            if name.startswith('_') or name in CRUD_METHODS:
                continue
            if inspect.isfunction(v):
                out[name] = v
    return out


def entity_type_of(interface: type) -> Optional[type]:
    for klass in interface.__mro__:
        for base in getattr(klass, '__orig_bases__', ()):
            if typing.get_origin(base) is CrudRepository:
                args = typing.get_args(base)
                if args and isinstance(args[0], type):
                    return args[0]
    return None


class VaultRepository(Generic[T]):
    """
    Repository over one collection of a secret store.

    Derived query methods are parsed once when the repository is created;
    a name outside the query grammar makes creation fail. Descriptors are
    kept per instance for its whole lifetime.
    """

    def __init__(self,
                 executor: QueryExecutor[T],
                 query_methods: Optional[Dict[str, Callable[..., Any]]] = None,
                 config: Optional[RepositoryConfig] = None,
                 entity_fields: Optional[Tuple[str, ...]] = None):
        self._executor = executor
        self._config = config or RepositoryConfig()
        self._entity_fields = entity_fields
        self._queries = QueryMethodCache()
        self._signatures: Dict[str, inspect.Signature] = {}
        self._declared: Dict[str, QueryMethodSignature] = {}

        for name, func in (query_methods or {}).items():
            self._declared[name] = QueryMethodSignature.from_function(func)
            sig = inspect.signature(func)
            params = list(sig.parameters.values())
            if params and params[0].name in ('self', 'cls'):
                params = params[1:]
            self._signatures[name] = sig.replace(parameters=params)

            descriptor = self._descriptor(name)
            if not descriptor.executable:
                if self._config.strict_query_methods:
                    descriptor.check_executable()
                logger.warning('Query method %s cannot be executed against %s and will fail when called',
                               name, executor.collection)

        logger.info('Repository for %s ready with %d query method(s)', executor.collection, len(self._queries))

    def _descriptor(self, name: str) -> QueryMethodDescriptor:
        return self._queries.get_or_build(
            name,
            lambda: parse_query_method(self._declared[name],
                                       id_attr=self._executor.converter.id_attr,
                                       entity_fields=self._entity_fields),
        )

    def _invoke(self, name: str, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        descriptor = self._descriptor(name)
        # fails the same way whatever the arguments are
        descriptor.check_executable()
        bound =self._signatures[name].bind(*args, **kwargs)
        bound.apply_defaults()
        return self._executor.execute(descriptor, bound.arguments)

    @property
    def collection(self) -> str:
        return self._executor.collection

    @property
    def query_methods(self) -> QueryMethodCache:
        return self._queries

    # ---- CrudRepository ----

    def save(self, entity: T) -> T:
        return self._executor.save(entity)

    def save_all(self, entities: Iterable[T]) -> List[T]:
        return self._executor.save_all(entities)

    def find_by_id(self, id: str) -> Optional[T]:
        return self._executor.find_by_id(id)

    def exists_by_id(self, id: str) -> bool:
        return self._executor.exists_by_id(id)

    def find_all(self, sort: Optional[Sort] = None) -> List[T]:
        return self._executor.execute(
            QueryMethodDescriptor('find_all', MatchAll(), sort_param='sort'), {'sort': sort}
        )

    def find_all_by_id(self, ids: Iterable[str]) -> List[T]:
        return self._executor.find_all_by_id(ids)

    def count(self) -> int:
        return self._executor.count()

    def delete_by_id(self, id: str) -> None:
        self._executor.delete_by_id(id)

    def delete(self, entity: T) -> None:
        self._executor.delete(entity)

    def delete_all(self, entities: Optional[Iterable[T]] = None) -> None:
        self._executor.delete_all(entities)


def _query_method(name: str) -> Callable[..., Any]:
    def method(self: VaultRepository, *args: Any, **kwargs: Any) -> Any:
        return self._invoke(name, args, kwargs)
    method.__name__ = name
    return method


class RepositoryFactory:
    """Creates repositories for interfaces deriving from CrudRepository."""

    def __init__(self, store: SecretStorageBackend, config: Optional[RepositoryConfig] = None):
        self.store = store
        self.config = config or RepositoryConfig()

    def get_repository(self,
                       interface: Type[Any],
                       entity_type: Optional[type] = None,
                       config: Optional[RepositoryConfig] = None,
                       converter: Optional[EntityConverter[Any]] = None) -> Any:
        cfg = config or self.config
        entity_type = entity_type or entity_type_of(interface)
        if entity_type is None:
            raise VaultRepositoryException(
                f'Cannot determine the entity type of {interface.__name__}; '
                f'derive it from CrudRepository[<Entity>] or pass entity_type'
            )

        entity_fields: Optional[Tuple[str, ...]] = None
        if converter is None:
            dc = DataclassConverter(entity_type, id_attr=cfg.id_attr)
            entity_fields = dc.field_names
            converter = dc

        methods = declared_query_methods(interface)
        repo_cls = type(
            f'{interface.__name__}Impl',
            (VaultRepository,),
            {name: _query_method(name) for name in methods},
        )
        executor = QueryExecutor(self.store, cfg.collection_path(entity_type), converter)
        return repo_cls(executor, query_methods=methods, config=cfg, entity_fields=entity_fields)
