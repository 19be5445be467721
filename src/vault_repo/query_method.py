# -*- coding: utf-8 -*-
"""
Derived query methods.

A repository method name such as ``find_top3_by_id_starts_with_order_by_name_desc``
(or its camelCase spelling ``findTop3ByIdStartsWithOrderByNameDesc``) is parsed
once into an immutable :class:`QueryMethodDescriptor`:

    <verb> [top<N>|first<N>] [distinct] [all] [<words>] [by <predicate>] [order_by <property>[asc|desc] (and ...)*]

Only the id can be filtered on, since the secret store has no secondary
indexes. Filters on any other property are still recognised so that they can
fail loudly instead of being mistaken for a typo.
"""
from __future__ import annotations

import collections.abc
import inspect
import logging
import re
import threading
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from vault_repo_types import (
    Direction,
    Limit,
    Order,
    Sort,
    UnparsableQueryMethod,
    UnsupportedQueryProperty,
)


logger = logging.getLogger(__name__)


class ResultShape(str, Enum):
    COLLECTION = 'collection'
    SINGLE = 'single'
    EXISTS = 'exists'
    COUNT = 'count'


@dataclass(frozen=True)
class MatchAll:
    pass


@dataclass(frozen=True)
class IdEquals:
    param: str


@dataclass(frozen=True)
class IdPrefix:
    param: str


@dataclass(frozen=True)
class UnsupportedProperty:
    name: str
    operator: Optional[str] = None


Predicate = Union[MatchAll, IdEquals, IdPrefix, UnsupportedProperty]


@dataclass(frozen=True)
class QueryMethodDescriptor:
    method_name: str
    predicate: Predicate = MatchAll()
    order: Tuple[Order, ...] = ()
    limit: Optional[int] = None
    shape: ResultShape = ResultShape.COLLECTION
    sort_param: Optional[str] = None
    limit_param: Optional[str] = None

    @property
    def executable(self) -> bool:
        return not isinstance(self.predicate, UnsupportedProperty)

    def check_executable(self) -> None:
        if isinstance(self.predicate, UnsupportedProperty):
            raise UnsupportedQueryProperty(self.method_name, self.predicate.name, self.predicate.operator)


# ---- grammar tables ----

VERBS: Dict[str, Optional[ResultShape]] = {
    'find': None,
    'read': None,
    'get': None,
    'query': None,
    'search': None,
    'stream': None,
    'exists': ResultShape.EXISTS,
    'count': ResultShape.COUNT,
}

_LIMIT_RE = re.compile(r'^(top|first)(\d*)$')

# Operator suffixes, longest first. Maps the token sequence to a canonical name.
OPERATORS: List[Tuple[Tuple[str, ...], str]] = sorted([
    (('is', 'starting', 'with'), 'starts_with'),
    (('starting', 'with'), 'starts_with'),
    (('starts', 'with'), 'starts_with'),
    (('is', 'ending', 'with'), 'ends_with'),
    (('ending', 'with'), 'ends_with'),
    (('ends', 'with'), 'ends_with'),
    (('is', 'containing'), 'containing'),
    (('containing',), 'containing'),
    (('contains',), 'containing'),
    (('is', 'not', 'containing'), 'not_containing'),
    (('not', 'containing'), 'not_containing'),
    (('is', 'like'), 'like'),
    (('like',), 'like'),
    (('is', 'not', 'like'), 'not_like'),
    (('not', 'like'), 'not_like'),
    (('matches', 'regex'), 'regex'),
    (('matches',), 'regex'),
    (('regex',), 'regex'),
    (('is', 'in'), 'in'),
    (('in',), 'in'),
    (('is', 'not', 'in'), 'not_in'),
    (('not', 'in'), 'not_in'),
    (('is', 'null'), 'is_null'),
    (('null',), 'is_null'),
    (('is', 'not', 'null'), 'is_not_null'),
    (('not', 'null'), 'is_not_null'),
    (('is', 'true'), 'true'),
    (('true',), 'true'),
    (('is', 'false'), 'false'),
    (('false',), 'false'),
    (('is', 'greater', 'than'), 'greater_than'),
    (('greater', 'than'), 'greater_than'),
    (('is', 'greater', 'than', 'equal'), 'greater_than_equal'),
    (('greater', 'than', 'equal'), 'greater_than_equal'),
    (('is', 'less', 'than'), 'less_than'),
    (('less', 'than'), 'less_than'),
    (('is', 'less', 'than', 'equal'), 'less_than_equal'),
    (('less', 'than', 'equal'), 'less_than_equal'),
    (('is', 'between'), 'between'),
    (('between',), 'between'),
    (('is', 'after'), 'after'),
    (('after',), 'after'),
    (('is', 'before'), 'before'),
    (('before',), 'before'),
    (('is', 'not'), 'not'),
    (('not',), 'not'),
    (('is', 'equal'), 'equals'),
    (('equals',), 'equals'),
    (('is',), 'equals'),
    (('ignore', 'case'), 'ignore_case'),
], key=lambda entry: -len(entry[0]))

# (property == id) operators the store can answer
EXECUTABLE_ID_OPERATORS = {
    'equals': IdEquals,
    'starts_with': IdPrefix,
}

_CONNECTORS = ('and', 'or')

_CAMEL_RE = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def tokenize(method_name: str) -> List[str]:
    '''
    Split a method name into lower-case words.

    'findTop1By' -> ['find', 'top1', 'by'], 'find_top_1_by' -> ['find', 'top1', 'by']
    '''
    snake = _CAMEL_RE.sub('_', method_name).lower()
    out: List[str] = []
    for t in snake.split('_'):
        if not t:
            continue
        if t.isdigit() and out and out[-1] in ('top', 'first'):
            out[-1] += t
            continue
        out.append(t)
    return out


# ---- method signatures ----

@dataclass(frozen=True)
class QueryMethodSignature:
    """Name, parameters (excluding self) and return annotation of a declared method."""
    name: str
    parameters: Tuple[Tuple[str, Any], ...] = ()
    return_annotation: Any = None

    @classmethod
    def from_function(cls, func: Callable[..., Any]) -> 'QueryMethodSignature':
        sig = inspect.signature(func)
        try:
            hints = typing.get_type_hints(func)
        except Exception:
            # forward references that cannot be resolved stay strings
            hints = dict(getattr(func, '__annotations__', {}))

        params = []
        for i, p in enumerate(sig.parameters.values()):
            if i == 0 and p.name in ('self', 'cls'):
                continue
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                raise UnparsableQueryMethod(func.__name__, f'*args/**kwargs parameter {p.name!r} is not supported')
            ann = hints.get(p.name, p.annotation)
            params.append((p.name, None if ann is inspect.Parameter.empty else ann))

        ret = hints.get('return', sig.return_annotation)
        if ret is inspect.Signature.empty:
            ret = None
        return cls(func.__name__, tuple(params), ret)


def _unwrap_optional(annotation: Any) -> Tuple[Any, bool]:
    if isinstance(annotation, str):
        s = annotation.strip()
        m = re.fullmatch(r'(?:typing\.)?Optional\[(.*)\]', s)
        if m:
            return m.group(1).strip(), True
        parts = [p.strip() for p in s.split('|')]
        if len(parts) == 2 and 'None' in parts:
            parts.remove('None')
            return parts[0], True
        return s, False

    if typing.get_origin(annotation) is Union:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1 and len(typing.get_args(annotation)) == 2:
            return args[0], True
    return annotation, False


def _is_type(annotation: Any, cls: type) -> bool:
    inner, _ = _unwrap_optional(annotation)
    if isinstance(inner, str):
        return inner.rsplit('.', 1)[-1] == cls.__name__
    return inner is cls


_COLLECTION_ORIGINS = (
    list, tuple, set, frozenset,
    collections.abc.Iterable, collections.abc.Iterator, collections.abc.Collection,
    collections.abc.Sequence, collections.abc.Set, collections.abc.Generator,
)

_COLLECTION_NAMES = re.compile(
    r'^(?:typing\.)?(List|list|Tuple|tuple|Set|set|FrozenSet|frozenset|Sequence|Iterable|Iterator|Collection|Generator)\b'
)


def _result_shape(method_name: str, annotation: Any) -> ResultShape:
    if annotation is None or annotation is type(None):
        return ResultShape.COLLECTION

    annotation, optional = _unwrap_optional(annotation)
    if isinstance(annotation, str):
        s = annotation.strip()
        if s == 'bool':
            return ResultShape.EXISTS
        if s == 'int':
            return ResultShape.COUNT
        if _COLLECTION_NAMES.match(s):
            return ResultShape.COLLECTION
        return ResultShape.SINGLE

    if annotation is bool:
        return ResultShape.EXISTS
    if annotation is int:
        return ResultShape.COUNT
    if annotation in _COLLECTION_ORIGINS or typing.get_origin(annotation) in _COLLECTION_ORIGINS:
        return ResultShape.COLLECTION
    if optional or isinstance(annotation, type):
        return ResultShape.SINGLE
    raise UnparsableQueryMethod(method_name, f'unsupported return type {annotation!r}')


# ---- parser ----

def _split_on(tokens: Sequence[str], separators: Iterable[str]) -> List[List[str]]:
    seps = set(separators)
    parts: List[List[str]] = [[]]
    for t in tokens:
        if t in seps:
            parts.append([])
        else:
            parts[-1].append(t)
    return parts


def _parse_criterion(method_name: str, tokens: List[str]) -> Tuple[str, str]:
    for op_tokens, op in OPERATORS:
        n = len(op_tokens)
        if len(tokens) > n and tuple(tokens[-n:]) == op_tokens:
            return '_'.join(tokens[:-n]), op
    if not tokens:
        raise UnparsableQueryMethod(method_name, 'missing property in predicate clause')
    if any(tuple(tokens) == op_tokens for op_tokens, _ in OPERATORS):
        raise UnparsableQueryMethod(method_name, f'operator {"_".join(tokens)!r} is missing a property')
    return '_'.join(tokens), 'equals'


def _parse_predicate(method_name: str, tokens: List[str], id_attr: str) -> Union[UnsupportedProperty, type]:
    '''
    Classify the `by` clause. Returns the predicate class for executable id
    criteria (bound to a parameter later) or an UnsupportedProperty marker.
    '''
    if not tokens:
        return MatchAll

    if tokens[0] in _CONNECTORS or tokens[-1] in _CONNECTORS:
        raise UnparsableQueryMethod(method_name, f'dangling {tokens[0] if tokens[0] in _CONNECTORS else tokens[-1]!r}')

    connector = next((t for t in tokens if t in _CONNECTORS), None)
    parts = _split_on(tokens, _CONNECTORS)
    criteria = [_parse_criterion(method_name, part) for part in parts]

    for prop, op in criteria:
        if prop != id_attr:
            return UnsupportedProperty(prop, op)
        if op not in EXECUTABLE_ID_OPERATORS:
            return UnsupportedProperty(prop, op)
    if len(criteria) > 1:
        return UnsupportedProperty(id_attr, connector)
    return EXECUTABLE_ID_OPERATORS[criteria[0][1]]


def _parse_order(method_name: str, tokens: List[str],
                 entity_fields: Optional[Sequence[str]]) -> Tuple[Order, ...]:
    if not tokens:
        raise UnparsableQueryMethod(method_name, "'order_by' without a property")
    orders = []
    for part in _split_on(tokens, ('and',)):
        direction = Direction.ASC
        if part and part[-1] in ('asc', 'desc'):
            direction = Direction.from_str(part[-1])
            part = part[:-1]
        if not part:
            raise UnparsableQueryMethod(method_name, "missing property in 'order_by' clause")
        prop = '_'.join(part)
        if entity_fields is not None and prop not in entity_fields:
            raise UnparsableQueryMethod(method_name, f'unknown order property {prop!r}')
        orders.append(Order(prop, direction))
    return tuple(orders)


def _find_order_by(tokens: List[str]) -> Optional[int]:
    for i in range(len(tokens) - 1):
        if tokens[i] == 'order' and tokens[i + 1] == 'by':
            return i
    return None


def parse_query_method(signature: QueryMethodSignature,
                       id_attr: str = 'id',
                       entity_fields: Optional[Sequence[str]] = None) -> QueryMethodDescriptor:
    """
    Parse a declared method into a QueryMethodDescriptor.

    Pure: depends only on the method's name, parameters and return
    annotation, never on call arguments. Raises UnparsableQueryMethod for
    names outside the grammar; predicates on anything but the id parse
    fine and yield an UnsupportedProperty descriptor.
    """
    name = signature.name
    tokens = tokenize(name)
    if not tokens or tokens[0] not in VERBS:
        allowed = ', '.join(VERBS)
        raise UnparsableQueryMethod(name, f'expected the name to start with one of: {allowed}')

    verb_shape = VERBS[tokens[0]]
    rest = tokens[1:]

    order_at = _find_order_by(rest)
    order_by_at = order_at + 1 if order_at is not None else None
    by_at = next((i for i, t in enumerate(rest) if t == 'by' and i != order_by_at), None)
    if order_at is not None and by_at is not None and by_at > order_at:
        by_at = None

    if by_at is not None:
        subject = rest[:by_at]
        predicate_tokens = rest[by_at + 1:order_at] if order_at is not None else rest[by_at + 1:]
    elif order_at is not None:
        subject = rest[:order_at]
        predicate_tokens = []
    else:
        subject = rest
        predicate_tokens = []
    order_tokens = rest[order_at + 2:] if order_at is not None else None

    limit: Optional[int] = None
    descriptive: List[str] = []
    for t in subject:
        m = _LIMIT_RE.match(t)
        if m and limit is None:
            limit = int(m.group(2)) if m.group(2) else 1
        elif t in ('distinct', 'all'):
            continue
        else:
            descriptive.append(t)
    if descriptive and by_at is None and order_at is None:
        raise UnparsableQueryMethod(name, f"unexpected {'_'.join(descriptive)!r}; use '<verb>_..._by_<criteria>'")

    order: Tuple[Order, ...] = ()
    if order_tokens is not None:
        order = _parse_order(name, order_tokens, entity_fields)

    sort_param: Optional[str] = None
    limit_param: Optional[str] = None
    value_params: List[str] = []
    for pname, ann in signature.parameters:
        if _is_type(ann, Sort):
            if sort_param is not None:
                raise UnparsableQueryMethod(name, 'more than one Sort parameter')
            sort_param = pname
        elif _is_type(ann, Limit):
            if limit_param is not None:
                raise UnparsableQueryMethod(name, 'more than one Limit parameter')
            limit_param = pname
        else:
            value_params.append(pname)

    shape = verb_shape or _result_shape(name, signature.return_annotation)

    kind = _parse_predicate(name, predicate_tokens, id_attr)
    predicate: Predicate
    if isinstance(kind, UnsupportedProperty):
        predicate = kind
    elif kind is MatchAll:
        if value_params:
            raise UnparsableQueryMethod(name, f'parameters {value_params} are not used by the query')
        predicate = MatchAll()
    else:
        if len(value_params) != 1:
            raise UnparsableQueryMethod(
                name, f'expected exactly one id argument, found {len(value_params)}'
            )
        predicate = kind(value_params[0])

    if sort_param is not None and order:
        logger.debug('%s: Sort parameter %r replaces name-derived order %s', name, sort_param, order)
        order = ()

    return QueryMethodDescriptor(
        method_name=name,
        predicate=predicate,
        order=order,
        limit=limit,
        shape=shape,
        sort_param=sort_param,
        limit_param=limit_param,
    )


class QueryMethodCache:
    """
    Descriptors of one repository instance, keyed by method name.

    Building is pure, so concurrent builds of the same entry are harmless:
    the first one stored wins and later ones are discarded.
    """

    def __init__(self) -> None:
        self._descriptors: Dict[str, QueryMethodDescriptor] = {}
        self._lock = threading.Lock()

    def get_or_build(self, name: str,
                     builder: Callable[[], QueryMethodDescriptor]) -> QueryMethodDescriptor:
        found = self._descriptors.get(name)
        if found is not None:
            return found
        built = builder()
        with self._lock:
            return self._descriptors.setdefault(name, built)

    def get(self, name: str) -> Optional[QueryMethodDescriptor]:
        return self._descriptors.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self):
        return iter(list(self._descriptors.values()))
