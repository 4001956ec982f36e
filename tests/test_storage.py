"""
Unit tests for JsonCombatStorage.

Tests cover:
- Creating, saving, loading, listing and deleting combats
- Transport methods (update batches, history, round state)
- Error handling for missing and corrupt combat files
"""

import json
import pytest
from pathlib import Path

from card_initiative.config import InitiativeSettings
from card_initiative.errors import TransportError
from card_initiative.models import Combatant, CombatantUpdate, RoundHistory, SortDirection
from card_initiative.storage import JsonCombatStorage

pytestmark = pytest.mark.anyio


# Test fixtures
@pytest.fixture
def temp_storage_dir(tmp_path: Path) -> Path:
    """Create a temporary storage directory for tests."""
    storage_dir = tmp_path / "test_storage"
    storage_dir.mkdir()
    return storage_dir


@pytest.fixture
def storage(temp_storage_dir: Path) -> JsonCombatStorage:
    return JsonCombatStorage(data_dir=temp_storage_dir)


class TestCombatFiles:
    """Tests for the combat file lifecycle."""

    def test_create_combat(self, storage: JsonCombatStorage, temp_storage_dir: Path) -> None:
        combat = storage.create_combat("Ambush", InitiativeSettings(deck_size=6, sort_direction="descending"))

        assert (temp_storage_dir / "combats" / f"{combat.id}.json").exists()
        assert combat.deck.available_cards == 6
        assert sorted(c.value for c in combat.deck.draw_pile) == [1, 2, 3, 4, 5, 6]
        assert combat.sort_direction == SortDirection.DESCENDING

    def test_save_and_load(self, storage: JsonCombatStorage) -> None:
        combat = storage.create_combat("Ambush")
        combat.add(Combatant(name="Hero", initiative=3, card_value=3, card_name="3"))
        combat.deck.draw(2)
        combat.history.capture(1, combat.combatants)
        storage.save_combat(combat)

        loaded = storage.load_combat(combat.id)

        assert loaded.model_dump() == combat.model_dump()
        assert 1 in loaded.history
        assert loaded.deck.available_cards == 8
        assert len(loaded.deck.discard_pile) == 2

    def test_load_missing(self, storage: JsonCombatStorage) -> None:
        with pytest.raises(FileNotFoundError):
            storage.load_combat("nope")

    def test_load_corrupt(self, storage: JsonCombatStorage, temp_storage_dir: Path) -> None:
        (temp_storage_dir / "combats" / "broken.json").write_text("{not json")
        with pytest.raises(TransportError):
            storage.load_combat("broken")

    def test_list_and_delete(self, storage: JsonCombatStorage) -> None:
        first = storage.create_combat("One")
        second = storage.create_combat("Two")

        assert storage.list_combats() == sorted([first.id, second.id])
        assert storage.delete_combat(first.id) is True
        assert storage.delete_combat(first.id) is False
        assert storage.list_combats() == [second.id]

    def test_saved_file_is_json(self, storage: JsonCombatStorage, temp_storage_dir: Path) -> None:
        combat = storage.create_combat("Ambush")
        with open(temp_storage_dir / "combats" / f"{combat.id}.json") as f:
            data = json.load(f)
        assert data["name"] == "Ambush"
        assert data["phase"] == "idle"


class TestTransport:
    """Tests for the transport methods used by the engine."""

    async def test_apply_combatant_updates(self, storage: JsonCombatStorage) -> None:
        combat = storage.create_combat("Ambush")
        hero = combat.add(Combatant(name="Hero"))
        storage.save_combat(combat)

        await storage.apply_combatant_updates(
            combat.id, [CombatantUpdate(id=hero.id, changes={"initiative": 4.0, "card_value": 4.0})]
        )

        stored = storage.load_combat(combat.id).get(hero.id)
        assert stored.initiative == 4.0
        assert stored.card_value == 4.0

    async def test_persist_history(self, storage: JsonCombatStorage) -> None:
        combat = storage.create_combat("Ambush")
        history = RoundHistory()
        history.capture(1, [Combatant(name="Hero", initiative=2)])
        history.capture(2, [Combatant(name="Hero", initiative=5)])

        await storage.persist_history(combat.id, history)

        loaded = storage.load_combat(combat.id).history
        assert sorted(loaded.rounds) == [1, 2]
        assert loaded.restore(2)[0].initiative == 5

    async def test_persist_round_state(self, storage: JsonCombatStorage) -> None:
        combat = storage.create_combat("Ambush")
        combat.round = 3
        combat.turn = 1

        await storage.persist_round_state(combat)

        loaded = storage.load_combat(combat.id)
        assert (loaded.round, loaded.turn) == (3, 1)

    async def test_transport_on_missing_combat(self, storage: JsonCombatStorage) -> None:
        with pytest.raises(TransportError):
            await storage.apply_combatant_updates("nope", [])
        with pytest.raises(TransportError):
            await storage.persist_history("nope", RoundHistory())
