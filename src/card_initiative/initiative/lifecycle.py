"""
Round lifecycle for card-initiative combats.

``RoundLifecycle`` drives a combat through ``idle -> active -> ended`` and
owns the round history. Whenever a round is left (forwards or backwards) the
state of every combatant is captured under that round's number. Entering a
round that has a snapshot restores it verbatim, so stepping back and forth
between rounds always shows the same cards and turn order. Entering a round
that has none either keeps the current cards or, with ``reset_each_round``,
clears and redraws them.

All public transitions take the controller's lock: one transition per combat
runs at a time, and each runs to completion or fails without rollback.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable

from ..config import InitiativeSettings
from ..errors import CombatStateError
from ..logutils import get_logger
from ..models import Combatant, CombatantUpdate, CombatPhase, CombatState
from .draw import InitiativeDrawer, locked_card_values
from .interfaces import Collaborators
from .ordering import compare_combatants

logger = get_logger("lifecycle")


class RoundLifecycle:
    """State machine for combat start, round changes, resets and combat end.

    Args:
        combat: The live combat. Mutated in place by every transition.
        settings: Initiative settings.
        collaborators: External services (rules, transport, notifier, ...).

    Usage:
        lifecycle = RoundLifecycle(combat, settings, collaborators)
        await lifecycle.start_combat()
        await lifecycle.next_round()
        await lifecycle.previous_round()
    """

    def __init__(
        self,
        combat: CombatState,
        settings: InitiativeSettings | None = None,
        collaborators: Collaborators | None = None,
    ) -> None:
        self.combat = combat
        self.settings = settings or InitiativeSettings()
        self.collaborators = collaborators or Collaborators()
        self.drawer = InitiativeDrawer(self.settings, self.collaborators)
        self._lock = asyncio.Lock()
        self.combat.sort_direction = self.settings.sort_direction

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def compare(self, a: Combatant, b: Combatant) -> int:
        """Turn-order comparison under the configured sort direction."""
        return compare_combatants(a, b, self.settings.sort_direction)

    @property
    def turns(self) -> list[Combatant]:
        return self.combat.turns

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def roll_initiative(
        self,
        ids: str | Iterable[str],
        *,
        commit_turn: bool = False,
        is_new_round: bool = False,
        message_options: dict[str, Any] | None = None,
    ) -> CombatState:
        """Draw initiative cards for the given combatants (see InitiativeDrawer)."""
        async with self._lock:
            return await self.drawer.roll_initiative(
                self.combat,
                ids,
                commit_turn=commit_turn,
                is_new_round=is_new_round,
                message_options=message_options,
            )

    async def start_combat(self) -> CombatState:
        """Start the combat.

        Duplicates fast combatants, resets the deck and draws for everyone
        without a card, each according to the settings, then begins round 1.

        Raises:
            CombatStateError: If the combat was already started.
        """
        async with self._lock:
            combat = self.combat
            if combat.phase != CombatPhase.IDLE:
                raise CombatStateError(f"Combat {combat.id} is already {combat.phase.value}")

            if self.settings.duplicate_on_start:
                await self._duplicate_fast_combatants()

            if self.settings.reset_deck_on_round_start:
                combat.deck.reset(shuffle=True, excluded_values=locked_card_values(combat))

            if self.settings.auto_draw:
                ids = [c.id for c in combat.combatants if not c.is_defeated and c.initiative is None]
                if ids:
                    await self.drawer.roll_initiative(combat, ids)

            combat.phase = CombatPhase.ACTIVE
            combat.round = 1
            combat.turn = 0
            await self.collaborators.transport.persist_round_state(combat)
            logger.info(f"Combat {combat.id} started with {len(combat.combatants)} combatant(s)")
            return combat

    async def next_round(self) -> CombatState:
        """Advance to the next round.

        The round being left is captured first. If the new round was visited
        before, its snapshot is restored; otherwise, with ``reset_each_round``,
        initiative is cleared and drawn again before returning.
        """
        async with self._lock:
            combat = self.combat
            self._require_active("advance the round")

            await self._capture_history()
            await self._clear_transient_actions()

            combat.round += 1
            combat.turn = 0
            logger.info(f"Combat {combat.id}: round {combat.round}")

            if await self._restore_history():
                return combat

            if self.settings.reset_each_round:
                await self._reset_for_new_round()
            else:
                await self.collaborators.transport.persist_round_state(combat)
            return combat

    async def previous_round(self) -> CombatState:
        """Go back one round, restoring that round's snapshot when there is one."""
        async with self._lock:
            combat = self.combat
            self._require_active("go back a round")

            await self._capture_history()

            combat.round = max(combat.round - 1, 0)
            combat.turn = None if combat.round == 0 else max(len(combat.combatants) - 1, 0)
            logger.info(f"Combat {combat.id}: back to round {combat.round}")

            if not await self._restore_history():
                await self.collaborators.transport.persist_round_state(combat)
            return combat

    async def reset_all(self) -> CombatState:
        """Clear initiative for everyone except locked, still-standing combatants."""
        async with self._lock:
            return await self._reset_all()

    async def end_combat(self) -> CombatState:
        """End the combat if the host confirms.

        When it ends and ``slow_and_fast_actions`` is enabled, transient
        actions are removed from every combatant.

        Returns:
            The combat; its phase tells whether it actually ended.
        """
        async with self._lock:
            combat = self.combat
            if combat.phase == CombatPhase.ENDED:
                raise CombatStateError(f"Combat {combat.id} has already ended")

            if not await self.collaborators.host.confirm_end_combat(combat):
                logger.info(f"Ending combat {combat.id} was not confirmed")
                return combat

            combat.phase = CombatPhase.ENDED
            if self.settings.slow_and_fast_actions:
                for combatant in combat.combatants:
                    await self._remove_transient_actions(combatant)

            await self.collaborators.transport.persist_round_state(combat)
            logger.info(f"Combat {combat.id} ended in round {combat.round}")
            return combat

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _require_active(self, action: str) -> None:
        if self.combat.phase != CombatPhase.ACTIVE:
            raise CombatStateError(
                f"Cannot {action}: combat {self.combat.id} is {self.combat.phase.value}"
            )

    async def _duplicate_fast_combatants(self) -> None:
        combat = self.combat
        for combatant in list(combat.combatants):
            speed = self.collaborators.rules.speed(combatant)
            if speed <= 1:
                continue
            copy_qty = speed - len(combat.combatants_sharing_token(combatant))
            if copy_qty > 0:
                await self.collaborators.duplicator.duplicate(combat, combatant, copy_qty)

    async def _capture_history(self) -> None:
        """Snapshot every combatant under the current round and persist the history."""
        combat = self.combat
        combat.history.capture(combat.round, combat.combatants)
        await self.collaborators.transport.persist_history(combat.id, combat.history)
        logger.debug(f"Captured round {combat.round} of combat {combat.id}")

    async def _restore_history(self) -> bool:
        """Restore the snapshot of the current round, if any.

        Returns:
            True if a snapshot was restored.
        """
        combat = self.combat
        restored = combat.history.restore(combat.round)
        if restored is None:
            return False

        combat.combatants = restored
        await self.collaborators.transport.persist_round_state(combat)
        logger.info(f"Restored round {combat.round} of combat {combat.id} from history")
        return True

    async def _remove_transient_actions(self, combatant: Combatant) -> None:
        try:
            await self.collaborators.cleanup.remove_transient_actions(combatant)
        except Exception as e:
            logger.error(f"Could not remove transient actions from {combatant.name}: {e}", exc_info=True)
            self.collaborators.notifier.notify(
                "error", f"Could not remove slow/fast actions from {combatant.name}: {e}"
            )

    async def _clear_transient_actions(self) -> None:
        """Run the cleanup service and clear the per-round flags of every combatant."""
        combat = self.combat
        updates = []
        for combatant in combat.combatants:
            await self._remove_transient_actions(combatant)
            updates.append(
                CombatantUpdate(id=combatant.id, changes={"fast_action": False, "slow_action": False})
            )

        if updates:
            await self.collaborators.transport.apply_combatant_updates(combat.id, updates)
            combat.apply_updates(updates)

    async def _reset_all(self) -> CombatState:
        combat = self.combat
        for combatant in combat.combatants:
            if combatant.lock_initiative and not combatant.is_defeated:
                continue
            combatant.initiative = None
            combatant.card_value = None
            combatant.card_name = None

        combat.turn = 0
        await self.collaborators.transport.persist_round_state(combat)
        logger.info(f"Initiative reset for combat {combat.id}")
        return combat

    async def _reset_for_new_round(self) -> None:
        """Clear initiative, optionally reshuffle, and draw for everyone."""
        combat = self.combat
        await self._reset_all()

        if self.settings.reset_deck_on_round_start:
            combat.deck.reset(shuffle=True, excluded_values=locked_card_values(combat))

        await self.drawer.roll_initiative(
            combat,
            [c.id for c in combat.combatants],
            is_new_round=True,
        )
