# -*- coding: utf-8 -*-
import pytest

from vault_repo import DataclassConverter, QueryExecutor
from vault_repo.query_method import (
    IdEquals,
    IdPrefix,
    MatchAll,
    QueryMethodDescriptor,
    ResultShape,
    UnsupportedProperty,
)
from vault_repo_types import InvalidEntityKey, Order, Sort, UnsupportedQueryProperty

from .conftest import Person


@pytest.fixture
def executor(store):
    ex = QueryExecutor(store, 'secret/person/', DataclassConverter(Person))
    for pid, name in [('walter', 'Walter'), ('skyler', 'Skyler'), ('walt-jr', 'Flynn'), ('hank', 'Hank')]:
        ex.save(Person(id=pid, firstname=name))
    store.calls.clear()
    return ex


def ids(people):
    return [p.id for p in people]


def test_collection_is_normalized(executor):
    assert executor.collection == 'secret/person'


@pytest.mark.parametrize('prefix, expected', [
    ('walt', {'walter', 'walt-jr'}),
    ('w', {'walter', 'walt-jr'}),
    ('', {'walter', 'skyler', 'walt-jr', 'hank'}),
    ('x', set()),
    ('WALT', set()),
])
def test_prefix_matches_exactly(executor, prefix, expected):
    d = QueryMethodDescriptor('find_by_id_starts_with', IdPrefix('p'))
    assert set(ids(executor.execute(d, {'p': prefix}))) == expected


def test_unsupported_never_touches_the_store(store):
    ex = QueryExecutor(store, 'secret/empty', DataclassConverter(Person))
    d = QueryMethodDescriptor('find_by_firstname', UnsupportedProperty('firstname', 'equals'))
    for _ in range(3):
        with pytest.raises(UnsupportedQueryProperty):
            ex.execute(d, {'name': 'x'})
    assert store.calls == []


def test_static_order_and_limit(executor):
    d = QueryMethodDescriptor('find_top2_by_order_by_firstname_desc', MatchAll(),
                              order=(Order.desc('firstname'),), limit=2)
    assert ids(executor.execute(d)) == ['walter', 'skyler']


def test_runtime_sort_replaces_static_order(executor):
    d = QueryMethodDescriptor('find_by', MatchAll(), order=(Order.desc('firstname'),), sort_param='sort')
    assert ids(executor.execute(d, {'sort': Sort.by('firstname')})) == ['walt-jr', 'hank', 'skyler', 'walter']
    assert ids(executor.execute(d, {'sort': None})) == ['walter', 'skyler', 'hank', 'walt-jr']


def test_sort_is_repeatable(executor):
    d = QueryMethodDescriptor('find_top3_by', MatchAll(), limit=3)
    first = ids(executor.execute(d))
    assert first == ['hank', 'skyler', 'walt-jr']
    assert ids(executor.execute(d)) == first


def test_point_lookup_validates_key(executor):
    d = QueryMethodDescriptor('find_one_by_id', IdEquals('id'), shape=ResultShape.SINGLE)
    with pytest.raises(InvalidEntityKey):
        executor.execute(d, {'id': '../etc'})
    assert executor.execute(d, {'id': 'hank'}).firstname == 'Hank'


def test_count_applies_limit(executor):
    d = QueryMethodDescriptor('count_top3_by', MatchAll(), limit=3, shape=ResultShape.COUNT)
    assert executor.execute(d) == 3
