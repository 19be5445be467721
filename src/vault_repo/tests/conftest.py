# -*- coding: utf-8 -*-
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pytest

from vault_repo import RepositoryFactory, SecretStoreKV
from vault_repo_types import Limit, Sort
from vault_repo.repository import CrudRepository
from typing_extensions import Protocol


class FakeKV:
    """In-memory stand-in for the mgr KV store."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}

    def get_store(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_store(self, key: str, value: Optional[str]) -> None:
        if value is None:
            self.data.pop(key, None)
        else:
            self.data[key] = value

    def get_store_prefix(self, prefix: str) -> Dict[str, str]:
        return {k: v for k, v in self.data.items() if k.startswith(prefix)}


class RecordingStore:
    """Wraps a store and records calls; can fail or drop entries on demand."""

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.calls: List[tuple] = []
        self.fail_on: Dict[str, Exception] = {}
        self.vanish: set = set()
        self.fail_delete_after: Optional[int] = None

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        self.calls.append(('get', path))
        if 'get' in self.fail_on:
            raise self.fail_on['get']
        if path in self.vanish:
            return None
        return self.inner.get(path)

    def put(self, path: str, fields: Dict[str, Any]) -> None:
        self.calls.append(('put', path))
        if 'put' in self.fail_on:
            raise self.fail_on['put']
        self.inner.put(path, fields)

    def delete(self, path: str) -> None:
        deletes = sum(1 for c in self.calls if c[0] == 'delete')
        self.calls.append(('delete', path))
        if self.fail_delete_after is not None and deletes >= self.fail_delete_after:
            raise ConnectionError('store unavailable')
        self.inner.delete(path)

    def list(self, prefix: str) -> List[str]:
        self.calls.append(('list', prefix))
        if 'list' in self.fail_on:
            raise self.fail_on['list']
        return self.inner.list(prefix)

    def count(self, op: str) -> int:
        return sum(1 for c in self.calls if c[0] == op)


@dataclass
class Person:
    id: str
    firstname: Optional[str] = None
    age: Optional[int] = None
    active: bool = True


class PersonRepository(CrudRepository[Person], Protocol):

    def find_by_id_starts_with(self, prefix: str) -> List[Person]: ...

    def find_all_by_order_by_firstname_asc(self) -> List[Person]: ...

    def find_all_by_order_by_firstname_desc(self) -> List[Person]: ...

    def find_top1_by(self, sort: Sort) -> List[Person]: ...

    def find_top2_by_id_starts_with(self, prefix: str, sort: Sort) -> List[Person]: ...

    def find_by(self, sort: Sort, limit: Limit) -> List[Person]: ...

    def find_one_by_id(self, id: str) -> Optional[Person]: ...

    def find_first_by_order_by_age_desc(self) -> Optional[Person]: ...

    def exists_by_id_starts_with(self, prefix: str) -> bool: ...

    def count_by_id_starts_with(self, prefix: str) -> int: ...

    def find_invalid_by_firstname(self, name: str) -> List[Person]: ...


@pytest.fixture
def kv() -> FakeKV:
    return FakeKV()


@pytest.fixture
def store(kv: FakeKV) -> RecordingStore:
    return RecordingStore(SecretStoreKV(kv))


@pytest.fixture
def repo(store: RecordingStore) -> Any:
    return RepositoryFactory(store).get_repository(PersonRepository)


@pytest.fixture
def walter() -> Person:
    return Person(id='walter', firstname='Walter', age=50)


@pytest.fixture
def skyler() -> Person:
    return Person(id='skyler', firstname='Skyler', age=40)


@pytest.fixture
def family(repo: Any, walter: Person, skyler: Person) -> Any:
    repo.save(walter)
    repo.save(skyler)
    return repo
