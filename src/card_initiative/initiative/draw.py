"""
Initiative draw orchestration.

``InitiativeDrawer.roll_initiative`` walks the requested combatants in order,
draws their cards from the shared deck, lets the selector pick a winner,
propagates a group leader's card to its followers and stages everything as
one batch of updates. The batch is committed through the transport first and
only then applied to the live combat, so observers never see a half-drawn
turn order.

Side effects that are not part of the combat state (the draw sound and the
chat messages) run last and are best-effort.
"""

from __future__ import annotations

import asyncio
import warnings
from typing import Any, Iterable

from ..config import InitiativeSettings
from ..deck import Card
from ..errors import DrawCountMismatch, InsufficientCardsError
from ..logutils import get_logger
from ..models import Combatant, CombatantUpdate, CombatState, DrawMessage
from .interfaces import Collaborators
from .selector import CardSelector

logger = get_logger("draw")


def locked_card_values(combat: CombatState) -> list[float]:
    """Values of the cards held by combatants with locked initiative."""
    return [
        c.initiative for c in combat.combatants
        if c.lock_initiative and c.initiative is not None
    ]


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``overrides`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class InitiativeDrawer:
    """Draws initiative cards for the combatants of a combat.

    Args:
        settings: Initiative settings (auto draw, messaging, sort direction, ...).
        collaborators: Rules, chooser, transport and notifier to use.
    """

    def __init__(
        self,
        settings: InitiativeSettings | None = None,
        collaborators: Collaborators | None = None,
    ) -> None:
        self.settings = settings or InitiativeSettings()
        self.collaborators = collaborators or Collaborators()
        self.selector = CardSelector(
            auto_draw=self.settings.auto_draw,
            chooser=self.collaborators.chooser,
        )
        self._background: set[asyncio.Task] = set()

    async def roll_initiative(
        self,
        combat: CombatState,
        ids: str | Iterable[str],
        *,
        commit_turn: bool = False,
        is_new_round: bool = False,
        message_options: dict[str, Any] | None = None,
    ) -> CombatState:
        """Draw initiative for the given combatants.

        Defeated combatants, group followers and combatants with locked
        initiative are skipped. A group leader's card is shared with its
        followers, offset so the leader acts first.

        Args:
            combat: The combat to draw for. Mutated in place.
            ids: One combatant id or an iterable of ids, processed in order.
            commit_turn: Keep the turn on the combatant who had it before the draw.
            is_new_round: Start the round from the first turn.
            message_options: Values merged into every chat message.

        Returns:
            The updated combat.

        Raises:
            UnknownParticipantError: If an id is not part of the combat. Raised
                before anything is drawn.
            TransportError: If the update batch could not be committed.
        """
        if isinstance(ids, str):
            ids = [ids]
        combatants = [combat.get(combatant_id) for combatant_id in ids]

        updates: list[CombatantUpdate] = []
        messages: list[DrawMessage] = []

        for combatant in combatants:
            if combatant.is_defeated or combatant.is_follower or combatant.lock_initiative:
                logger.debug(f"Skipping {combatant.name}: not drawing this time")
                continue

            cards = await self.draw_cards(combat, combatant)
            if not cards:
                self.collaborators.notifier.notify(
                    "warning", f"No initiative card left for {combatant.name}"
                )
                continue

            card = await self.selector.select(cards, combatant)
            update_data = {
                "initiative": card.value,
                "card_value": card.value,
                "card_name": card.label,
            }
            updates.append(CombatantUpdate(id=combatant.id, changes=dict(update_data)))

            if combatant.is_group_leader:
                update_data["card_value"] += self.settings.combatant_sort_order_modifier()
                for follower in combat.followers_of(combatant):
                    if follower.is_defeated or follower.lock_initiative:
                        continue
                    updates.append(CombatantUpdate(id=follower.id, changes=dict(update_data)))

            messages.append(self.build_message(combatant, card, message_options or {}))

        current = combat.current_combatant
        current_id = current.id if current else None

        if updates:
            await self.collaborators.transport.apply_combatant_updates(combat.id, updates)
            combat.apply_updates(updates)
            logger.info(f"Committed {len(updates)} initiative update(s) for combat {combat.id}")

        if commit_turn:
            combat.turn = next(
                (i for i, c in enumerate(combat.turns) if c.id == current_id),
                combat.turn,
            )
        if is_new_round:
            combat.turn = 0
        if commit_turn or is_new_round:
            await self.collaborators.transport.persist_round_state(combat)

        self.play_draw_sound()
        if self.settings.messaging and messages:
            await self.post_messages(messages)

        return combat

    async def draw_cards(self, combat: CombatState, combatant: Combatant) -> list[Card]:
        """Draw the candidate cards of one combatant.

        Resets the deck first when it holds fewer cards than needed. On a
        redraw the previously held card joins the candidates.
        """
        deck = combat.deck
        cards_to_draw = self.collaborators.rules.number_of_cards_to_draw(combatant)

        if cards_to_draw > deck.available_cards:
            self.collaborators.notifier.notify(
                "info", "Not enough cards in the initiative deck, reshuffling"
            )
            deck.reset(shuffle=True, excluded_values=locked_card_values(combat))

        try:
            cards = deck.draw(cards_to_draw)
        except InsufficientCardsError as err:
            logger.warning(f"{err}; drawing the remaining cards")
            cards = deck.draw(err.available) if err.available else []

        if len(cards) != cards_to_draw:
            message = f"{combatant.name} should draw {cards_to_draw} card(s) but got {len(cards)}"
            logger.warning(f"{DrawCountMismatch.__name__}: {message}")
            warnings.warn(message, DrawCountMismatch, stacklevel=2)

        if combatant.initiative is not None:
            previous = deck.find_by_value(combatant.card_value)
            if previous is not None and previous not in cards:
                cards.append(previous)

        return cards

    def build_message(
        self,
        combatant: Combatant,
        card: Card,
        message_options: dict[str, Any],
    ) -> DrawMessage:
        data = {
            "content": card.label,
            "card_value": card.value,
            "speaker": {
                "combatant": combatant.id,
                "token": combatant.token_id,
                "actor": combatant.actor_id,
                "alias": f"{combatant.name} draws initiative",
            },
            "flavor": f"{combatant.name} draws initiative",
            "whisper_to_gm": combatant.hidden,
            "flags": {"initiative_draw": True},
        }
        return DrawMessage.model_validate(_merge(data, message_options))

    # ------------------------------------------------------------------
    # Best-effort side effects
    # ------------------------------------------------------------------

    def play_draw_sound(self) -> None:
        """Start the card-flip sound without waiting for it."""
        try:
            task = asyncio.ensure_future(
                self.collaborators.notifier.play_sound(
                    self.settings.draw_sound, volume=self.settings.draw_sound_volume
                )
            )
        except Exception as e:
            logger.warning(f"Could not play draw sound: {e}")
            return
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Could not play draw sound: {error}", exc_info=error)

    async def post_messages(self, messages: list[DrawMessage]) -> None:
        try:
            await self.collaborators.notifier.create_messages(messages)
        except Exception as e:
            logger.error(f"Failed to post {len(messages)} initiative message(s): {e}", exc_info=True)

    async def wait_for_side_effects(self) -> None:
        """Wait until background side effects (sounds) have finished."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
