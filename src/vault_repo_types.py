# -*- coding: utf-8 -*-
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union


# Stored secrets are addressed as `<collection>/<key>`; keys are a single path segment.
PATH_SEPARATOR = '/'


class VaultRepositoryException(Exception):
    pass


class UnparsableQueryMethod(VaultRepositoryException):
    def __init__(self, method_name: str, reason: str) -> None:
        super().__init__(f'Cannot derive a query from method {method_name!r}: {reason}')
        self.method_name = method_name
        self.reason = reason


class UnsupportedQueryProperty(VaultRepositoryException):
    def __init__(self, method_name: str, prop: str, operator: Optional[str] = None) -> None:
        criteria = f'{prop!r} ({operator})' if operator else repr(prop)
        super().__init__(
            f'Query method {method_name!r} filters on {criteria}; '
            f'the secret store can only be queried by id equality or id prefix'
        )
        self.method_name = method_name
        self.prop = prop
        self.operator = operator


class IncorrectResultSize(VaultRepositoryException):
    def __init__(self, method_name: str, actual: int) -> None:
        super().__init__(f'Query method {method_name!r} expected at most 1 result, got {actual}')
        self.method_name = method_name
        self.actual = actual


class InvalidEntityKey(VaultRepositoryException, ValueError):
    pass


class SecretBackendError(VaultRepositoryException):
    pass


class Direction(str, Enum):
    ASC = 'asc'
    DESC = 'desc'

    @classmethod
    def from_str(cls, s: str) -> 'Direction':
        try:
            return Direction(s.strip().lower())
        except Exception as e:
            allowed = ', '.join(x.value for x in Direction)
            raise VaultRepositoryException(
                f'Invalid sort direction {s!r}. Expected one of: {allowed}'
            ) from e


@dataclass(frozen=True)
class Order:
    property: str
    direction: Direction = Direction.ASC

    def __post_init__(self) -> None:
        if not self.property:
            raise ValueError('Order property must not be empty')

    @property
    def ascending(self) -> bool:
        return self.direction == Direction.ASC

    @classmethod
    def asc(cls, prop: str) -> 'Order':
        return cls(prop, Direction.ASC)

    @classmethod
    def desc(cls, prop: str) -> 'Order':
        return cls(prop, Direction.DESC)


@dataclass(frozen=True)
class Sort:
    '''
    Ordering supplied at call time.

    A method parameter annotated with `Sort` replaces whatever ordering
    the method name would otherwise imply.
    '''
    orders: Tuple[Order, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # accept any iterable, store a tuple
        object.__setattr__(self, 'orders', tuple(self.orders))

    @classmethod
    def by(cls, *orders: Union[Order, str]) -> 'Sort':
        return cls(tuple(o if isinstance(o, Order) else Order.asc(o) for o in orders))

    @classmethod
    def unsorted(cls) -> 'Sort':
        return cls()

    def ascending(self) -> 'Sort':
        return Sort(tuple(Order.asc(o.property) for o in self.orders))

    def descending(self) -> 'Sort':
        return Sort(tuple(Order.desc(o.property) for o in self.orders))

    def and_(self, other: 'Sort') -> 'Sort':
        return Sort(self.orders + other.orders)

    def __bool__(self) -> bool:
        return bool(self.orders)

    def __iter__(self):
        return iter(self.orders)


@dataclass(frozen=True)
class Limit:
    max_results: int

    def __post_init__(self) -> None:
        if isinstance(self.max_results, bool) or not isinstance(self.max_results, int):
            raise ValueError(f'Limit must be an int, got {type(self.max_results).__name__}')
        if self.max_results < 0:
            raise ValueError(f'Limit must not be negative: {self.max_results}')


def validate_key(key: object) -> str:
    if not isinstance(key, str):
        raise InvalidEntityKey(f'Entity id must be a string, got {type(key).__name__}')
    if not key:
        raise InvalidEntityKey('Entity id must not be empty')
    if PATH_SEPARATOR in key:
        raise InvalidEntityKey(f"Entity id must not contain '{PATH_SEPARATOR}': {key!r}")
    return key


def entity_path(collection: str, key: str) -> str:
    return f'{collection}{PATH_SEPARATOR}{validate_key(key)}'

