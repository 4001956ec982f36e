"""
Card selection for a single combatant.

Given the candidate cards of one draw (plus the previously held card on a
redraw), the selector orders them so that index 0 is the best card under the
combatant's keep rule, then either keeps it or asks a chooser.
"""

from __future__ import annotations

import asyncio

from ..deck import Card
from ..errors import ChoiceCancelled
from ..logutils import get_logger
from ..models import Combatant, KeepState
from .interfaces import AutoChooser, CardChooser

logger = get_logger("selector")


def card_sort_order_modifier(keep_state: KeepState) -> int:
    """Sign applied to card values so the best card sorts first.

    Keeping the highest card sorts values descending, keeping the lowest
    sorts them ascending.
    """
    return -1 if keep_state == KeepState.HIGHEST else 1


def sort_candidates(cards: list[Card], keep_state: KeepState) -> list[Card]:
    """Return candidates sorted best first (stable for equal values)."""
    modifier = card_sort_order_modifier(keep_state)
    return sorted(cards, key=lambda c: c.value * modifier)


class CardSelector:
    """Picks the winning card among a combatant's candidates.

    Args:
        auto_draw: Keep the best card without asking the chooser.
        chooser: Used when ``auto_draw`` is off and there is a real choice.
    """

    def __init__(self, auto_draw: bool = True, chooser: CardChooser | None = None) -> None:
        self.auto_draw = auto_draw
        self.chooser = chooser or AutoChooser()

    async def select(self, cards: list[Card], combatant: Combatant) -> Card:
        """Resolve the winning card.

        Args:
            cards: Non-empty list of candidate cards.
            combatant: The combatant drawing.

        Returns:
            Exactly one card from ``cards``.

        Raises:
            ValueError: If ``cards`` is empty.
        """
        if not cards:
            raise ValueError(f"No candidate cards for {combatant.name}")

        ordered = sort_candidates(cards, combatant.keep_state)
        best = ordered[0]
        if len(ordered) == 1 or self.auto_draw:
            return best

        return await self.choose(ordered, best, combatant)

    async def choose(self, ordered: list[Card], best: Card, combatant: Combatant) -> Card:
        """Ask the chooser, falling back to ``best`` when no valid choice comes back."""
        try:
            choice = await self.chooser.choose_card(ordered, best, combatant)
        except ChoiceCancelled:
            logger.debug(f"Card choice cancelled for {combatant.name}, keeping {best.label}")
            return best
        except asyncio.CancelledError:
            # A dismissed dialog future is a cancelled choice; cancelling the draw itself is not.
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            logger.debug(f"Card choice dialog cancelled for {combatant.name}, keeping {best.label}")
            return best

        if choice is None:
            return best
        # Only a card that was actually offered can win.
        for card in ordered:
            if card.id == choice.id:
                return card
        logger.warning(f"Chooser returned a card that was not offered to {combatant.name}, keeping {best.label}")
        return best
