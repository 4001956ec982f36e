"""
card-initiative - card-draw initiative and round lifecycle for tabletop combat,
served over MCP with FastMCP.
"""

from .config import InitiativeSettings, load_settings
from .deck import Card, Deck
from .errors import (
    ChoiceCancelled,
    CombatStateError,
    DrawCountMismatch,
    InitiativeError,
    InsufficientCardsError,
    TransientCleanupError,
    TransportError,
    UnknownParticipantError,
)
from .models import *
from .storage import JsonCombatStorage

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("card-initiative")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = [
    "Card",
    "Deck",
    "Combatant",
    "CombatantUpdate",
    "CombatPhase",
    "CombatState",
    "DrawMessage",
    "KeepState",
    "RoundHistory",
    "SortDirection",
    "InitiativeSettings",
    "load_settings",
    "JsonCombatStorage",
    "InitiativeError",
    "InsufficientCardsError",
    "DrawCountMismatch",
    "UnknownParticipantError",
    "TransientCleanupError",
    "TransportError",
    "CombatStateError",
    "ChoiceCancelled",
]
