"""
Initiative deck for card-based turn order.

A Deck is a shared, depleting resource: cards leave the draw pile when a
combatant draws them and sit in the discard pile until the deck is reset.
Cards whose value is locked to a combatant's held initiative can be kept out
of circulation on reset so they are never dealt twice.

The deck never reshuffles by itself. A draw that asks for more cards than the
draw pile holds raises InsufficientCardsError and the caller decides when to
reset.
"""

import random
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from shortuuid import random as short_random

from .errors import InsufficientCardsError
from .logutils import get_logger

logger = get_logger("deck")


class Card(BaseModel):
    """A single initiative card. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: short_random(length=8))
    value: float = Field(description="Numeric value, drives turn order")
    name: str = Field(description="Card name")
    description: str | None = Field(default=None, description="Display label shown to players")

    @property
    def label(self) -> str:
        """Text used as a combatant's card name."""
        return self.description or self.name


class Deck(BaseModel):
    """Draw pile plus discard pile of initiative cards.

    Every card belongs to exactly one of the two piles. Drawn cards move to the
    discard pile, which therefore also holds the cards currently assigned to
    combatants.
    """

    draw_pile: list[Card] = Field(default_factory=list)
    discard_pile: list[Card] = Field(default_factory=list)

    _rng: random.Random = PrivateAttr(default_factory=random.Random)

    @classmethod
    def standard(cls, size: int = 10, seed: int | None = None, shuffle: bool = True) -> "Deck":
        """Build the standard initiative deck with cards valued 1..size.

        Args:
            size: Number of cards in the deck.
            seed: Optional seed for the shuffle RNG (useful for replays and tests).
            shuffle: Whether to shuffle the new draw pile.

        Returns:
            A new Deck with every card in the draw pile.
        """
        if size < 1:
            raise ValueError(f"Deck size must be at least 1, got {size}")
        cards = [Card(value=v, name=str(v)) for v in range(1, size + 1)]
        deck = cls.from_cards(cards, seed=seed)
        if shuffle:
            deck.shuffle()
        return deck

    @classmethod
    def from_cards(cls, cards: Iterable[Card], seed: int | None = None) -> "Deck":
        """Build a deck whose draw pile is ``cards`` in the given order (index 0 is the top)."""
        deck = cls(draw_pile=list(cards))
        deck.seed(seed)
        return deck

    def seed(self, seed: int | None) -> None:
        """Re-seed the shuffle RNG."""
        self._rng = random.Random(seed)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def available_cards(self) -> int:
        """Number of cards left in the draw pile."""
        return len(self.draw_pile)

    @property
    def cards(self) -> list[Card]:
        """Every card of the deck, draw pile first."""
        return [*self.draw_pile, *self.discard_pile]

    def find_by_value(self, value: float | None) -> Card | None:
        """Find a card anywhere in the deck by its value.

        Args:
            value: The card value to look for. ``None`` never matches.

        Returns:
            The first matching Card, or None.
        """
        if value is None:
            return None
        return next((c for c in self.cards if c.value == value), None)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def draw(self, quantity: int = 1) -> list[Card]:
        """Draw cards from the top of the draw pile into the discard pile.

        Args:
            quantity: Number of cards to draw.

        Returns:
            The drawn cards, in deck order.

        Raises:
            ValueError: If quantity is lower than 1.
            InsufficientCardsError: If the draw pile holds fewer than ``quantity`` cards.
        """
        if quantity < 1:
            raise ValueError(f"Cannot draw {quantity} card(s)")
        if quantity > self.available_cards:
            raise InsufficientCardsError(quantity, self.available_cards)

        drawn = self.draw_pile[:quantity]
        del self.draw_pile[:quantity]
        self.discard_pile.extend(drawn)
        logger.debug(f"Drew {[c.value for c in drawn]}, {self.available_cards} card(s) left")
        return drawn

    def reset(self, shuffle: bool = True, excluded_values: Iterable[float | None] = ()) -> None:
        """Return cards to the draw pile.

        Cards whose value is in ``excluded_values`` stay in the discard pile:
        they are held by locked combatants and must not be dealt again.

        Args:
            shuffle: Whether to shuffle the rebuilt draw pile.
            excluded_values: Values of the cards to keep out of circulation.
        """
        excluded = {v for v in excluded_values if v is not None}
        everything = self.cards
        self.draw_pile = [c for c in everything if c.value not in excluded]
        self.discard_pile = kept = [c for c in everything if c.value in excluded]
        if shuffle:
            self.shuffle()
        logger.info(
            f"Initiative deck reset: {self.available_cards} card(s) available, "
            f"{len(kept)} held out of circulation"
        )

    def shuffle(self) -> None:
        """Shuffle the draw pile in place."""
        self._rng.shuffle(self.draw_pile)
