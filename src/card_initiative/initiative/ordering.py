"""
Turn-order comparator for card initiative.

Combatants holding a card are ordered by card value in the configured
direction. Combatants without a card come after every carded combatant and
are ordered by name, then id, so the order is total and deterministic even
before anyone has drawn.

``compare_combatants`` is a strict weak ordering for a fixed direction, which
keeps ``sorted`` with ``functools.cmp_to_key`` well defined.
"""

from functools import cmp_to_key
from typing import Iterable

from ..models import Combatant, SortDirection


def compare_combatants(
    a: Combatant,
    b: Combatant,
    direction: SortDirection = SortDirection.ASCENDING,
) -> int:
    """Compare two combatants for turn order.

    Args:
        a: First combatant.
        b: Second combatant.
        direction: Ascending puts the lowest card first.

    Returns:
        -1 if ``a`` acts before ``b``, 1 if after, 0 if tied.
    """
    if a.has_card and b.has_card:
        n = 1 if direction == SortDirection.ASCENDING else -1
        if a.card_value < b.card_value:
            return -n
        if a.card_value > b.card_value:
            return n
        return 0

    if a.has_card != b.has_card:
        return -1 if a.has_card else 1

    if a.name != b.name:
        return -1 if a.name < b.name else 1
    return (a.id > b.id) - (a.id < b.id)


def turn_order(
    combatants: Iterable[Combatant],
    direction: SortDirection = SortDirection.ASCENDING,
) -> list[Combatant]:
    """Return combatants sorted into turn order (stable for ties)."""
    return sorted(
        combatants,
        key=cmp_to_key(lambda a, b: compare_combatants(a, b, direction)),
    )
