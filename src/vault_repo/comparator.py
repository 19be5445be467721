# -*- coding: utf-8 -*-
from __future__ import annotations

import functools
from typing import Any, Callable, Dict, Iterable, Tuple

from vault_repo_types import Order


Fields = Dict[str, Any]


def _rank(v: Any) -> Tuple[int, Any]:
    # None < bool < number < str; unknown types compare by their string form
    if v is None:
        return (0, 0)
    if isinstance(v, bool):
        return (1, v)
    if isinstance(v, (int, float)):
        return (2, v)
    if isinstance(v, str):
        return (3, v)
    return (4, str(v))


def _cmp(a: Any, b: Any) -> int:
    ra, rb = _rank(a), _rank(b)
    return (ra > rb) - (ra < rb)


def build_comparator(orders: Iterable[Order], id_attr: str = 'id') -> Callable[[Fields], Any]:
    """
    Build a sort key for field records.

    Properties are compared in the given order, a descending order inverts
    only its own property, and ties are always broken by ascending id so
    that repeated sorts of the same data give the same sequence.
    """
    orders = tuple(orders)

    def compare(a: Fields, b: Fields) -> int:
        for o in orders:
            c = _cmp(a.get(o.property), b.get(o.property))
            if c:
                return c if o.ascending else -c
        return _cmp(a.get(id_attr), b.get(id_attr))

    return functools.cmp_to_key(compare)
