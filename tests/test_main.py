"""
Tests for the card-initiative MCP tools.

Tests cover:
- Creating combats and adding combatants
- Starting, advancing, rewinding and ending a combat through the tools
- Turn order rendering
- Error messages for unknown combats, unknown combatants and bad transitions
"""

import re

import pytest

from card_initiative.config import InitiativeSettings
from card_initiative.models import CombatPhase
from card_initiative.storage import JsonCombatStorage

# Import main module once -- tools are accessed via m.<tool>.fn()
from card_initiative import main as m

pytestmark = pytest.mark.anyio


@pytest.fixture
def storage(tmp_path, monkeypatch) -> JsonCombatStorage:
    """Point the server at a fresh storage directory."""
    storage = JsonCombatStorage(data_dir=tmp_path / "data")
    monkeypatch.setattr(m, "storage", storage)
    monkeypatch.setattr(m, "settings", InitiativeSettings())
    monkeypatch.setattr(m, "_lifecycles", {})
    return storage


def _id(result: str) -> str:
    match = re.search(r"\(id: ([^)]+)\)", result)
    assert match, result
    return match.group(1)


@pytest.fixture
def combat_id(storage) -> str:
    """A combat with three combatants, not yet started."""
    combat_id = _id(m.create_combat.fn(name="Goblin Ambush"))
    for name in ("Hero", "Rogue", "Goblin"):
        m.add_combatant.fn(combat_id=combat_id, name=name)
    return combat_id


# ============================================================================
# Setup Tools
# ============================================================================


class TestSetup:
    """create_combat and add_combatant."""

    async def test_create_combat(self, storage):
        result = m.create_combat.fn(name="Goblin Ambush")

        assert result.startswith("✅ Created combat 'Goblin Ambush'")
        assert "10-card deck" in result
        assert storage.list_combats() == [_id(result)]

    async def test_add_combatant_is_saved(self, storage):
        combat_id = _id(m.create_combat.fn(name="Duel"))

        result = m.add_combatant.fn(combat_id=combat_id, name="Knight", cards_to_draw=2, hidden=True)

        assert result.startswith("✅ Added Knight")
        stored = storage.load_combat(combat_id)
        knight = stored.get(_id(result))
        assert knight.cards_to_draw == 2
        assert knight.hidden is True

    async def test_add_to_unknown_combat(self, storage):
        result = m.add_combatant.fn(combat_id="missing", name="Knight")
        assert result.startswith("❌")
        assert "missing" in result

    async def test_show_empty_combat(self, storage):
        combat_id = _id(m.create_combat.fn(name="Empty"))
        result = m.show_turn_order.fn(combat_id=combat_id)
        assert "**Empty** (idle) - Round 0" in result
        assert "No combatants." in result


# ============================================================================
# Combat Flow
# ============================================================================


class TestCombatFlow:
    """Driving a combat through the tools."""

    async def test_start_combat(self, combat_id, storage):
        result = await m.start_combat.fn(combat_id=combat_id)

        assert result.startswith("**Combat Started!**")
        assert "Round 1" in result
        assert "1. " in result and "3. " in result
        assert "◀ current" in result
        assert "no card" not in result

        stored = storage.load_combat(combat_id)
        assert stored.phase == CombatPhase.ACTIVE
        assert all(c.has_card for c in stored.combatants)

    async def test_start_twice(self, combat_id):
        await m.start_combat.fn(combat_id=combat_id)
        result = await m.start_combat.fn(combat_id=combat_id)
        assert result.startswith("❌")

    async def test_round_navigation(self, combat_id, storage):
        await m.start_combat.fn(combat_id=combat_id)
        round_one = m.show_turn_order.fn(combat_id=combat_id)

        result = await m.next_round.fn(combat_id=combat_id)
        assert "Round 2" in result
        assert storage.load_combat(combat_id).round == 2
        assert 1 in storage.load_combat(combat_id).history

        result = await m.previous_round.fn(combat_id=combat_id)
        assert "Round 1" in result
        # Same cards in the same order
        strip = lambda text: [line.split(" (")[0] for line in text.splitlines()[2:]]
        assert strip(result) == strip(round_one)

    async def test_next_round_before_start(self, combat_id):
        result = await m.next_round.fn(combat_id=combat_id)
        assert result.startswith("❌ Cannot advance the round")

    async def test_draw_initiative(self, combat_id):
        result = await m.draw_initiative.fn(combat_id=combat_id)
        assert "no card" not in result

    async def test_draw_for_unknown_combatant(self, combat_id, storage):
        result = await m.draw_initiative.fn(combat_id=combat_id, combatant_ids=["nobody"])

        assert result.startswith("❌")
        assert "nobody" in result
        assert not any(c.has_card for c in storage.load_combat(combat_id).combatants)

    async def test_reset_initiative(self, combat_id):
        await m.start_combat.fn(combat_id=combat_id)
        result = await m.reset_initiative.fn(combat_id=combat_id)
        assert result.count("[no card]") == 3

    async def test_end_combat(self, combat_id, storage):
        await m.start_combat.fn(combat_id=combat_id)

        result = await m.end_combat.fn(combat_id=combat_id)

        assert result.startswith("**Combat Ended.** Goblin Ambush")
        assert combat_id not in m._lifecycles
        assert storage.load_combat(combat_id).phase == CombatPhase.ENDED

        again = await m.end_combat.fn(combat_id=combat_id)
        assert again.startswith("❌")
        assert "already ended" in again


class TestTurnOrderFormat:
    """Rendering of the turn order."""

    async def test_marks(self, storage):
        combat_id = _id(m.create_combat.fn(name="Marks"))
        m.add_combatant.fn(combat_id=combat_id, name="Statue", lock_initiative=True)
        combatant_id = _id(m.add_combatant.fn(combat_id=combat_id, name="Zombie"))
        m._get_lifecycle(combat_id).combat.get(combatant_id).is_defeated = True

        result = m.show_turn_order.fn(combat_id=combat_id)

        assert "Statue [no card] (locked)" in result
        assert "Zombie [no card] (defeated)" in result
