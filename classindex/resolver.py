"""Superclass-chain walk that decides whether a class extends a base.

Verdicts are memoized per base. Every class visited on a walk shares the
verdict of the walk, so resolving all classes costs roughly one visit per
header no matter how deep the chains are.

Only concrete links are followed. An abstract class or interface between a
concrete class and the base ends the walk with a negative verdict, even if
the base sits further up the chain.
"""

from __future__ import annotations

from typing import Optional

from classindex.header import OBJECT_TYPE, is_concrete
from classindex.store import HeaderStore

MAX_HOPS = 256


def _mark(visited: list[str], memo: dict[str, bool], verdict: bool) -> None:
    for name in visited:
        memo.setdefault(name, verdict)


def is_descendant(
    name: str,
    base: str,
    headers: HeaderStore,
    memo: dict[str, bool],
) -> bool:
    """Check whether ``name`` is a concrete descendant of ``base``.

    Args:
        name: Internal name of the candidate class.
        base: Internal name of the base type.
        headers: All known headers.
        memo: Verdict cache scoped to ``base``; updated in place.
    """
    cached = memo.get(name)
    if cached is not None:
        return cached

    header = headers.get(name)
    if not is_concrete(header):
        memo[name] = False
        return False

    visited = [name]
    cur: Optional[str] = header.super_name
    hops = 0

    while cur is not None and hops <= MAX_HOPS:
        if cur == base:
            _mark(visited, memo, True)
            return True
        if cur == OBJECT_TYPE:
            _mark(visited, memo, False)
            return False

        cached = memo.get(cur)
        if cached is not None:
            _mark(visited, memo, cached)
            return cached

        parent = headers.get(cur)
        if not is_concrete(parent):
            _mark(visited, memo, False)
            return False

        visited.append(cur)
        cur = parent.super_name
        hops += 1

    # Cycle, chain too deep, or a root other than Object
    _mark(visited, memo, False)
    return False


def find_descendants(
    base: str,
    headers: HeaderStore,
    memo: Optional[dict[str, bool]] = None,
) -> set[str]:
    """Return every concrete class in ``headers`` that extends ``base``."""
    if memo is None:
        memo = {}
    found = set()
    for name, header in headers.items():
        if not header.is_concrete:
            continue
        if is_descendant(name, base, headers, memo):
            found.add(name)
    return found
