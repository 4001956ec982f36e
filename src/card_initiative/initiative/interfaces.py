"""
Collaborator protocols for the initiative engine.

The draw orchestrator and the round lifecycle never reach for global state:
rules, card choice, persistence, notifications, duplication and cleanup are
injected through the protocols below. Each protocol ships with a simple
in-process implementation used by the bundled server and by the tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from ..errors import TransportError
from ..logutils import get_logger
from ..models import Combatant, CombatantUpdate, DrawMessage, RoundHistory, new_id

if TYPE_CHECKING:
    from ..deck import Card
    from ..models import CombatState

logger = get_logger("interfaces")


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class RulesProvider(Protocol):
    """Game rules that decide how many cards a combatant draws and how fast it is."""

    def number_of_cards_to_draw(self, combatant: Combatant) -> int:
        ...

    def speed(self, combatant: Combatant) -> int:
        ...


class CardChooser(Protocol):
    """Lets a player pick one card among several candidates."""

    async def choose_card(
        self,
        cards: list[Card],
        default: Card,
        combatant: Combatant,
    ) -> Card | None:
        """Return the chosen card.

        Args:
            cards: Candidates, already sorted so that index 0 is the best card.
            default: The card kept when the player makes no choice.
            combatant: The combatant choosing.

        Returns:
            The chosen card. Returning None or raising ChoiceCancelled keeps
            the default.
        """
        ...


class Transport(Protocol):
    """Persistence of combatant batches, history and round state.

    Implementations raise TransportError when a call did not apply.
    """

    async def apply_combatant_updates(self, combat_id: str, updates: list[CombatantUpdate]) -> None:
        ...

    async def persist_history(self, combat_id: str, history: RoundHistory) -> None:
        ...

    async def persist_round_state(self, combat: CombatState) -> None:
        ...


class Notifier(Protocol):
    """User-facing notifications, chat messages and sounds."""

    def notify(self, level: str, message: str) -> None:
        ...

    async def play_sound(self, src: str, volume: float = 0.75) -> None:
        ...

    async def create_messages(self, messages: list[DrawMessage]) -> None:
        ...


class Duplicator(Protocol):
    """Creates extra combatants for a token (one per additional turn)."""

    async def duplicate(self, combat: CombatState, combatant: Combatant, count: int) -> list[Combatant]:
        ...


class TransientCleanup(Protocol):
    """Removes per-round action markers (slow/fast actions) from a combatant's token."""

    async def remove_transient_actions(self, combatant: Combatant) -> None:
        ...


class CombatHost(Protocol):
    """Host decisions the engine cannot make on its own."""

    async def confirm_end_combat(self, combat: CombatState) -> bool:
        ...


# ---------------------------------------------------------------------------
# Default implementations
# ---------------------------------------------------------------------------


class AttributeRules:
    """Reads the card count and speed straight from the combatant record."""

    def number_of_cards_to_draw(self, combatant: Combatant) -> int:
        return combatant.cards_to_draw

    def speed(self, combatant: Combatant) -> int:
        return combatant.speed


class AutoChooser:
    """Always keeps the default card."""

    async def choose_card(self, cards: list[Card], default: Card, combatant: Combatant) -> Card | None:
        return default


class InMemoryTransport:
    """Transport that keeps every call in memory.

    Set ``fail`` to make the next calls raise TransportError.
    """

    def __init__(self) -> None:
        self.batches: list[tuple[str, list[CombatantUpdate]]] = []
        self.histories: list[tuple[str, dict[int, list[dict[str, Any]]]]] = []
        self.round_states: list[dict[str, Any]] = []
        self.fail = False

    def _check(self, what: str) -> None:
        if self.fail:
            raise TransportError(f"{what} could not be applied")

    async def apply_combatant_updates(self, combat_id: str, updates: list[CombatantUpdate]) -> None:
        self._check("Combatant update batch")
        self.batches.append((combat_id, [u.model_copy(deep=True) for u in updates]))

    async def persist_history(self, combat_id: str, history: RoundHistory) -> None:
        self._check("Round history")
        self.histories.append((combat_id, history.model_dump()["rounds"]))

    async def persist_round_state(self, combat: CombatState) -> None:
        self._check("Round state")
        self.round_states.append(
            {
                "round": combat.round,
                "turn": combat.turn,
                "combatants": [c.model_dump(mode="json") for c in combat.combatants],
            }
        )


class LoggingNotifier:
    """Notifier that logs everything and keeps what it was given."""

    def __init__(self) -> None:
        self.notifications: list[tuple[str, str]] = []
        self.sounds: list[tuple[str, float]] = []
        self.messages: list[DrawMessage] = []

    def notify(self, level: str, message: str) -> None:
        self.notifications.append((level, message))
        log = {"error": logger.error, "warning": logger.warning}.get(level, logger.info)
        log(message)

    async def play_sound(self, src: str, volume: float = 0.75) -> None:
        self.sounds.append((src, volume))
        logger.debug(f"Playing {src} at volume {volume}")

    async def create_messages(self, messages: list[DrawMessage]) -> None:
        self.messages.extend(messages)
        for message in messages:
            logger.info(f"{message.flavor}: {message.content}")


class TokenDuplicator:
    """Adds copies of a combatant bound to the same token to the combat."""

    async def duplicate(self, combat: CombatState, combatant: Combatant, count: int) -> list[Combatant]:
        existing = len(combat.combatants_sharing_token(combatant))
        token_id = combatant.token_id or combatant.id
        if combatant.token_id is None:
            combat.get(combatant.id).token_id = token_id

        copies = []
        for n in range(existing + 1, existing + count + 1):
            copy = combatant.model_copy(
                update={
                    "id": new_id(),
                    "name": f"{combatant.name} ({n})",
                    "token_id": token_id,
                    "initiative": None,
                    "card_value": None,
                    "card_name": None,
                },
                deep=True,
            )
            combat.add(copy)
            copies.append(copy)
        logger.info(f"Duplicated {combatant.name} {count} time(s)")
        return copies


class NoopCleanup:
    """Cleanup for hosts that keep no action markers on tokens."""

    async def remove_transient_actions(self, combatant: Combatant) -> None:
        return None


class AlwaysConfirm:
    async def confirm_end_combat(self, combat: CombatState) -> bool:
        return True


@dataclass
class Collaborators:
    """Every external service the engine talks to."""
    rules: RulesProvider = field(default_factory=AttributeRules)
    chooser: CardChooser = field(default_factory=AutoChooser)
    transport: Transport = field(default_factory=InMemoryTransport)
    notifier: Notifier = field(default_factory=LoggingNotifier)
    duplicator: Duplicator = field(default_factory=TokenDuplicator)
    cleanup: TransientCleanup = field(default_factory=NoopCleanup)
    host: CombatHost = field(default_factory=AlwaysConfirm)
