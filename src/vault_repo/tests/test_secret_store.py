# -*- coding: utf-8 -*-
import json

import pytest

from vault_repo.secret_store import SECRET_STORE_PREFIX, SecretStoreKV
from vault_repo_types import SecretBackendError


@pytest.fixture
def kv_store(kv):
    return SecretStoreKV(kv)


def test_get_missing(kv_store):
    assert kv_store.get('secret/person/nobody') is None


def test_put_and_get(kv, kv_store):
    kv_store.put('secret/person/walter', {'id': 'walter', 'firstname': 'Walter'})
    assert kv_store.get('secret/person/walter') == {'id': 'walter', 'firstname': 'Walter'}

    raw = json.loads(kv.data[f'{SECRET_STORE_PREFIX}secret/person/walter'])
    assert raw['version'] == 1
    assert raw['created'] == raw['updated']


def test_put_bumps_version_and_keeps_created(kv_store):
    kv_store.put('secret/person/walter', {'firstname': 'Walter'})
    first = kv_store.get_record('secret/person/walter')
    kv_store.put('secret/person/walter', {'firstname': 'Heisenberg'})
    rec = kv_store.get_record('secret/person/walter')
    assert rec.version == 2
    assert rec.created == first.created
    assert rec.data == {'firstname': 'Heisenberg'}


def test_delete_is_idempotent(kv_store):
    kv_store.put('secret/person/walter', {})
    kv_store.delete('secret/person/walter')
    kv_store.delete('secret/person/walter')
    assert kv_store.get('secret/person/walter') is None


def test_list_immediate_children(kv_store):
    kv_store.put('secret/person/walter', {})
    kv_store.put('secret/person/skyler', {})
    kv_store.put('secret/person/family/junior', {})
    kv_store.put('secret/personnel/gus', {})
    assert kv_store.list('secret/person') == ['family', 'skyler', 'walter']
    assert kv_store.list('secret') == ['person', 'personnel']


def test_list_empty(kv_store):
    assert kv_store.list('secret/person') == []


def test_legacy_epoch_timestamps(kv, kv_store):
    kv.set_store(f'{SECRET_STORE_PREFIX}secret/person/walter',
                 json.dumps({'version': 3, 'created': 0, 'updated': 0, 'data': {'a': 1}}))
    rec = kv_store.get_record('secret/person/walter')
    assert rec.created == '1970-01-01T00:00:00Z'
    assert rec.version == 3


@pytest.mark.parametrize('raw', ['not json', '[1, 2]', '{"data": "oops"}'])
def test_corrupt_payload(kv, kv_store, raw):
    kv.set_store(f'{SECRET_STORE_PREFIX}secret/person/walter', raw)
    with pytest.raises(SecretBackendError):
        kv_store.get('secret/person/walter')


def test_empty_path_rejected(kv_store):
    with pytest.raises(ValueError):
        kv_store.get('/')
