"""
Data models for card-initiative.
"""

from copy import deepcopy
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from shortuuid import random

from .deck import Card, Deck
from .errors import UnknownParticipantError


def new_id() -> str:
    """Generate a new random 8-character id."""
    return random(length=8)


class KeepState(str, Enum):
    """Which card wins when a combatant holds several candidates."""
    HIGHEST = "highest"
    LOWEST = "lowest"


class SortDirection(str, Enum):
    """Direction in which card values are turned into turn order."""
    ASCENDING = "ascending"
    DESCENDING = "descending"


class CombatPhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"


class Combatant(BaseModel):
    """A participant of a card-initiative combat."""
    id: str = Field(default_factory=new_id)
    name: str
    initiative: float | None = Field(default=None, description="Rank used for turn order; None when no card is held")
    card_value: float | None = Field(default=None, description="Value of the held card (followers carry an offset)")
    card_name: str | None = Field(default=None, description="Label of the held card")
    group_id: str | None = Field(default=None, description="Group shared by a leader and its followers")
    is_group_leader: bool = False
    lock_initiative: bool = Field(default=False, description="Exempt from redraws and resets")
    is_defeated: bool = False
    keep_state: KeepState = KeepState.HIGHEST
    hidden: bool = False
    token_id: str | None = None
    actor_id: str | None = None
    # Transient per-round flags, cleared at every round boundary
    fast_action: bool = False
    slow_action: bool = False
    # Inputs supplied by the rules layer
    cards_to_draw: int = Field(default=1, ge=1, description="Cards drawn per initiative draw")
    speed: int = Field(default=1, ge=1, description="Number of turns per round (duplicates on start)")

    @property
    def has_card(self) -> bool:
        return self.card_value is not None

    @property
    def in_group(self) -> bool:
        return self.group_id is not None

    @property
    def is_follower(self) -> bool:
        """True for group members that do not draw on their own."""
        return self.in_group and not self.is_group_leader


class CombatantUpdate(BaseModel):
    """A staged partial update for one combatant."""
    id: str
    changes: dict[str, Any] = Field(default_factory=dict)

    def apply(self, combatant: Combatant) -> Combatant:
        """Return a copy of ``combatant`` with the staged changes applied."""
        return combatant.model_copy(update=self.changes)


class DrawMessage(BaseModel):
    """Notification record produced for each initiative draw."""
    content: str = Field(description="Label of the card drawn")
    card_value: float
    speaker: dict[str, Any] = Field(default_factory=dict)
    flavor: str = ""
    whisper_to_gm: bool = False
    flags: dict[str, Any] = Field(default_factory=lambda: {"initiative_draw": True})


class RoundHistory(BaseModel):
    """Combatant snapshots keyed by the round in which they were taken.

    A snapshot for round R is the state of every combatant at the moment R
    was left. Restoring hands out fresh copies; the stored entry never changes
    until R is left again.
    """
    rounds: dict[int, list[dict[str, Any]]] = Field(default_factory=dict)

    def __contains__(self, round_number: object) -> bool:
        return round_number in self.rounds

    def __len__(self) -> int:
        return len(self.rounds)

    def capture(self, round_number: int, combatants: list[Combatant]) -> None:
        """Store (or re-capture) the snapshot for ``round_number``."""
        self.rounds[round_number] = [c.model_dump(mode="json") for c in combatants]

    def restore(self, round_number: int) -> list[Combatant] | None:
        """Rebuild the combatants stored for ``round_number``, or None if never captured."""
        snapshot = self.rounds.get(round_number)
        if snapshot is None:
            return None
        return [Combatant.model_validate(deepcopy(data)) for data in snapshot]


class CombatState(BaseModel):
    """A single card-initiative combat: round, turn, deck, history and combatants."""
    id: str = Field(default_factory=new_id)
    name: str = "Combat"
    phase: CombatPhase = CombatPhase.IDLE
    round: int = 0
    turn: int | None = None
    combatants: list[Combatant] = Field(default_factory=list)
    deck: Deck = Field(default_factory=Deck.standard)
    history: RoundHistory = Field(default_factory=RoundHistory)
    sort_direction: SortDirection = SortDirection.ASCENDING

    def get(self, combatant_id: str) -> Combatant:
        """Look up a combatant by id.

        Raises:
            UnknownParticipantError: If no combatant has this id.
        """
        for combatant in self.combatants:
            if combatant.id == combatant_id:
                return combatant
        raise UnknownParticipantError(combatant_id)

    def has(self, combatant_id: str) -> bool:
        return any(c.id == combatant_id for c in self.combatants)

    def add(self, combatant: Combatant) -> Combatant:
        self.combatants.append(combatant)
        return combatant

    @property
    def turns(self) -> list[Combatant]:
        """Combatants in turn order."""
        from .initiative.ordering import turn_order

        return turn_order(self.combatants, self.sort_direction)

    @property
    def current_combatant(self) -> Combatant | None:
        """The combatant whose turn it is, if any."""
        turns = self.turns
        if self.turn is None or not 0 <= self.turn < len(turns):
            return None
        return turns[self.turn]

    def followers_of(self, leader: Combatant) -> list[Combatant]:
        """Members of ``leader``'s group other than the leader.

        A follower points at its leader either through a shared ``group_id``
        or by using the leader's own id as its ``group_id``.
        """
        keys = {k for k in (leader.id, leader.group_id) if k is not None}
        return [
            c for c in self.combatants
            if c.group_id in keys and c.id != leader.id and not c.is_group_leader
        ]

    def combatants_sharing_token(self, combatant: Combatant) -> list[Combatant]:
        """Every combatant (``combatant`` included) bound to the same token."""
        if combatant.token_id is None:
            return [combatant]
        return [c for c in self.combatants if c.token_id == combatant.token_id]

    def apply_updates(self, updates: list[CombatantUpdate]) -> None:
        """Apply a batch of staged updates to the live combatants in one step."""
        by_id: dict[str, list[CombatantUpdate]] = {}
        for update in updates:
            by_id.setdefault(update.id, []).append(update)

        combatants = []
        for combatant in self.combatants:
            for update in by_id.get(combatant.id, []):
                combatant = update.apply(combatant)
            combatants.append(combatant)
        self.combatants = combatants
