"""Detect endpoints whose path and/or method changed.

A rename shows up in a diff as one ``endpoint-removed`` plus one
``endpoint-added``.  Applying those literally would delete the user's
request and create a fresh one, losing its identity and saved responses.
:func:`pair_moves` finds such pairs so the applier can update in place.

Matching is tiered; each tier only sees what earlier tiers left unpaired:

1. ``operationId`` equal on both sides.
2. ``summary`` equal on both sides.
3. Uniqueness (optional): the pair is the only unpaired removal and
   addition sharing a method, or sharing a path, or they are the only
   unpaired removal and addition overall.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from specsync.models import Change, ChangeKind
from specsync.spec.nodes import split_endpoint_key


class PairingConfidence(str, Enum):
    """Which tier produced a pair."""

    OPERATION_ID = "operation-id"
    SUMMARY = "summary"
    UNIQUENESS = "uniqueness"
    """Paired without any shared content; a guess."""


@dataclass(frozen=True)
class EndpointMove:
    """A removal and an addition that describe one moved endpoint."""

    removed: Change
    added: Change
    confidence: PairingConfidence

    @property
    def old_key(self) -> str:
        return self.removed.path

    @property
    def new_key(self) -> str:
        return self.added.path


def _field(change: Change, name: str) -> Any:
    value = change.old_value if change.kind == ChangeKind.ENDPOINT_REMOVED else change.new_value
    return value.get(name) if isinstance(value, dict) else None


def _match_on(name: str) -> Callable[[Change, Change], bool]:
    def _matches(removed: Change, added: Change) -> bool:
        old = _field(removed, name)
        return bool(old) and old == _field(added, name)
    return _matches


def _unique_pair(removed: Change, added: Change, removals: list[Change], additions: list[Change]) -> bool:
    r_method, r_path = split_endpoint_key(removed.path)
    a_method, a_path = split_endpoint_key(added.path)

    if r_method == a_method and r_path != a_path:
        others = [c for c in removals if c is not removed and split_endpoint_key(c.path)[0] == r_method]
        others += [c for c in additions if c is not added and split_endpoint_key(c.path)[0] == a_method]
        if not others:
            return True

    if r_path == a_path and r_method != a_method:
        others = [c for c in removals if c is not removed and split_endpoint_key(c.path)[1] == r_path]
        others += [c for c in additions if c is not added and split_endpoint_key(c.path)[1] == a_path]
        if not others:
            return True

    if r_method != a_method and r_path != a_path:
        return len(removals) == 1 and len(additions) == 1

    return False


def pair_moves(changes: list[Change], *, allow_fallback: bool = True) -> list[EndpointMove]:
    """Pair endpoint removals with endpoint additions.

    Parameters
    ----------
    changes:
        A diff's change list; only endpoint additions and removals are read.
    allow_fallback:
        Enable the uniqueness tier.

    Returns
    -------
    list[EndpointMove]
        Moves in removal order.  Every change appears in at most one move.
    """
    removals = [c for c in changes if c.kind == ChangeKind.ENDPOINT_REMOVED]
    additions = [c for c in changes if c.kind == ChangeKind.ENDPOINT_ADDED]
    moves: list[EndpointMove] = []

    tiers: list[tuple[PairingConfidence, Callable[[Change, Change], bool]]] = [
        (PairingConfidence.OPERATION_ID, _match_on("operationId")),
        (PairingConfidence.SUMMARY, _match_on("summary")),
    ]
    for confidence, matches in tiers:
        for removed in list(removals):
            for added in additions:
                if matches(removed, added):
                    moves.append(EndpointMove(removed, added, confidence))
                    removals.remove(removed)
                    additions.remove(added)
                    break

    if allow_fallback:
        pool_removals, pool_additions = list(removals), list(additions)
        for removed in pool_removals:
            for added in pool_additions:
                if added in additions and _unique_pair(removed, added, pool_removals, pool_additions):
                    moves.append(EndpointMove(removed, added, PairingConfidence.UNIQUENESS))
                    additions.remove(added)
                    break

    order = {id(c): i for i, c in enumerate(changes)}
    moves.sort(key=lambda m: order[id(m.removed)])
    return moves
