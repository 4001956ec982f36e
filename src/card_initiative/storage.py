"""
Storage layer for card-initiative.
Handles persistence of combats to JSON files, one file per combat.
"""

import json
from pathlib import Path

from pydantic import ValidationError

from .config import InitiativeSettings
from .deck import Deck
from .errors import TransportError
from .logutils import get_logger
from .models import CombatantUpdate, CombatState, RoundHistory

logger = get_logger("storage")


class JsonCombatStorage:
    """Stores combats as JSON files and acts as the engine's transport.

    Every transport call rewrites the combat file, so a crash between two
    calls leaves the last fully applied state on disk.
    """

    def __init__(self, data_dir: str | Path = "initiative_data"):
        self.data_dir = Path(data_dir)
        logger.debug(f"📂 Initializing JsonCombatStorage with data_dir: {self.data_dir.resolve()}")
        (self.data_dir / "combats").mkdir(parents=True, exist_ok=True)

    def _combat_file(self, combat_id: str) -> Path:
        return self.data_dir / "combats" / f"{combat_id}.json"

    # ------------------------------------------------------------------
    # Combat files
    # ------------------------------------------------------------------

    def create_combat(self, name: str = "Combat", settings: InitiativeSettings | None = None) -> CombatState:
        """Create and save a new idle combat with a fresh standard deck."""
        settings = settings or InitiativeSettings()
        combat = CombatState(
            name=name,
            deck=Deck.standard(settings.deck_size),
            sort_direction=settings.sort_direction,
        )
        self.save_combat(combat)
        logger.info(f"✅ Created combat '{name}' ({combat.id})")
        return combat

    def save_combat(self, combat: CombatState) -> None:
        """Write a combat to disk.

        Raises:
            TransportError: If the file could not be written.
        """
        path = self._combat_file(combat.id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(combat.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
            tmp_path.replace(path)
        except OSError as e:
            raise TransportError(f"Could not save combat {combat.id}: {e}") from e
        logger.debug(f"💾 Saved combat {combat.id}")

    def load_combat(self, combat_id: str) -> CombatState:
        """Read a combat from disk.

        Raises:
            FileNotFoundError: If no combat has this id.
            TransportError: If the file exists but cannot be parsed.
        """
        path = self._combat_file(combat_id)
        if not path.exists():
            raise FileNotFoundError(f"Combat '{combat_id}' not found")
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return CombatState.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise TransportError(f"Could not load combat {combat_id}: {e}") from e

    def list_combats(self) -> list[str]:
        """Ids of all stored combats."""
        return sorted(p.stem for p in (self.data_dir / "combats").glob("*.json"))

    def delete_combat(self, combat_id: str) -> bool:
        path = self._combat_file(combat_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"🗑️ Deleted combat {combat_id}")
        return True

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _load_for_update(self, combat_id: str) -> CombatState:
        try:
            return self.load_combat(combat_id)
        except FileNotFoundError as e:
            raise TransportError(str(e)) from e

    async def apply_combatant_updates(self, combat_id: str, updates: list[CombatantUpdate]) -> None:
        stored = self._load_for_update(combat_id)
        stored.apply_updates(updates)
        self.save_combat(stored)

    async def persist_history(self, combat_id: str, history: RoundHistory) -> None:
        stored = self._load_for_update(combat_id)
        stored.history = history.model_copy(deep=True)
        self.save_combat(stored)

    async def persist_round_state(self, combat: CombatState) -> None:
        self.save_combat(combat)
