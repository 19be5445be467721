# -*- coding: utf-8 -*-
import pytest

from vault_repo_types import (
    Direction,
    InvalidEntityKey,
    Limit,
    Order,
    Sort,
    VaultRepositoryException,
    entity_path,
)


@pytest.mark.parametrize('s, expected', [
    ('asc', Direction.ASC),
    ('DESC', Direction.DESC),
    (' Desc ', Direction.DESC),
])
def test_direction_from_str(s, expected):
    assert Direction.from_str(s) == expected


def test_direction_from_str_invalid():
    with pytest.raises(VaultRepositoryException):
        Direction.from_str('sideways')


def test_sort_helpers():
    s = Sort.by('firstname', Order.desc('age'))
    assert s.orders == (Order.asc('firstname'), Order.desc('age'))
    assert list(s.descending()) == [Order.desc('firstname'), Order.desc('age')]
    assert list(s.ascending()) == [Order.asc('firstname'), Order.asc('age')]
    assert s.and_(Sort.by('id')).orders[-1] == Order.asc('id')
    assert s
    assert not Sort.unsorted()
    assert Sort([Order.asc('a')]).orders == (Order.asc('a'),)


def test_order_requires_property():
    with pytest.raises(ValueError):
        Order('')


@pytest.mark.parametrize('bad', [-1, True, '3'])
def test_limit_validation(bad):
    with pytest.raises(ValueError):
        Limit(bad)


def test_entity_path():
    assert entity_path('secret/person', 'walter') == 'secret/person/walter'
    with pytest.raises(InvalidEntityKey):
        entity_path('secret/person', 'a/b')
    with pytest.raises(ValueError):
        entity_path('secret/person', '')
