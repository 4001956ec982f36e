"""
Exception hierarchy for card-initiative.

Recovery policy:
- InsufficientCardsError is recovered inside the draw (deck reset and retry).
- DrawCountMismatch is issued as a warning (and logged); the draw goes on with the cards it got.
- UnknownParticipantError aborts a call before any state is touched.
- TransientCleanupError is reported through the notifier and never blocks a round.
- TransportError is fatal: the batch or snapshot did not apply, so the caller
  should re-fetch the combat.
"""


class InitiativeError(Exception):
    """Base exception for card-initiative errors."""
    pass


class InsufficientCardsError(InitiativeError):
    """Raised when a draw asks for more cards than the draw pile holds."""
    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot draw {requested} card(s): only {available} left in the draw pile"
        )


class DrawCountMismatch(UserWarning):
    """Category for draws that returned a different number of cards than requested."""
    pass


class UnknownParticipantError(InitiativeError, KeyError):
    """Raised when an id does not belong to any combatant of the combat."""
    def __init__(self, combatant_id: str):
        self.combatant_id = combatant_id
        super().__init__(f"Unknown combatant: {combatant_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class TransientCleanupError(InitiativeError):
    """Raised by a cleanup service when transient actions could not be removed."""
    pass


class TransportError(InitiativeError):
    """Raised when a batch commit or a snapshot could not be persisted."""
    pass


class CombatStateError(InitiativeError):
    """Raised when a transition is not allowed in the current combat phase."""
    pass


class ChoiceCancelled(InitiativeError):
    """Raised by a card chooser when the player dismissed the choice."""
    pass
