# -*- coding: utf-8 -*-
from .converter import DataclassConverter, EntityConverter
from .query_executor import QueryExecutor
from .query_method import (
    IdEquals,
    IdPrefix,
    MatchAll,
    QueryMethodCache,
    QueryMethodDescriptor,
    QueryMethodSignature,
    ResultShape,
    UnsupportedProperty,
    parse_query_method,
)
from .repository import CrudRepository, RepositoryConfig, RepositoryFactory, VaultRepository
from .secret_backend import SecretStorageBackend
from .secret_store import SecretRecord, SecretStoreKV

__all__ = [
    'CrudRepository',
    'DataclassConverter',
    'EntityConverter',
    'IdEquals',
    'IdPrefix',
    'MatchAll',
    'QueryExecutor',
    'QueryMethodCache',
    'QueryMethodDescriptor',
    'QueryMethodSignature',
    'RepositoryConfig',
    'RepositoryFactory',
    'ResultShape',
    'SecretRecord',
    'SecretStorageBackend',
    'SecretStoreKV',
    'UnsupportedProperty',
    'VaultRepository',
    'parse_query_method',
]
