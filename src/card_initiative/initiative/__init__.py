"""
Card-draw initiative engine.

Provides the deck-backed initiative draw, the turn-order comparator and the
round lifecycle (start, next/previous round with history, reset, end).

Components:
- CardSelector: Orders candidate cards and picks the winner
- InitiativeDrawer: Draws cards for combatants and commits one update batch
- compare_combatants / turn_order: Turn-order comparator
- RoundLifecycle: Combat and round state machine with per-round history
- Collaborators: The injected external services

Usage:
    from card_initiative.initiative import RoundLifecycle, Collaborators

    lifecycle = RoundLifecycle(combat, settings, Collaborators())
    await lifecycle.start_combat()
    await lifecycle.next_round()
"""

from .interfaces import (
    AlwaysConfirm,
    AttributeRules,
    AutoChooser,
    CardChooser,
    Collaborators,
    CombatHost,
    Duplicator,
    InMemoryTransport,
    LoggingNotifier,
    NoopCleanup,
    Notifier,
    RulesProvider,
    TokenDuplicator,
    TransientCleanup,
    Transport,
)
from .ordering import compare_combatants, turn_order
from .selector import CardSelector, card_sort_order_modifier, sort_candidates
from .draw import InitiativeDrawer, locked_card_values
from .lifecycle import RoundLifecycle

__all__ = [
    # Engine
    "InitiativeDrawer",
    "RoundLifecycle",
    "CardSelector",
    "card_sort_order_modifier",
    "sort_candidates",
    "locked_card_values",
    "compare_combatants",
    "turn_order",
    # Collaborators
    "Collaborators",
    "RulesProvider",
    "CardChooser",
    "Transport",
    "Notifier",
    "Duplicator",
    "TransientCleanup",
    "CombatHost",
    "AttributeRules",
    "AutoChooser",
    "InMemoryTransport",
    "LoggingNotifier",
    "TokenDuplicator",
    "NoopCleanup",
    "AlwaysConfirm",
]
