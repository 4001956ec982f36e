"""
Settings for card-initiative.

Settings live in a small YAML file (``initiative.yaml`` by default). When the
file does not exist a template with the default values is written so the
game master has something to edit.
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from .logutils import get_logger
from .models import SortDirection

logger = get_logger("config")

DEFAULT_SETTINGS_FILE = "initiative.yaml"


class InitiativeSettings(BaseModel):
    """Configuration for initiative draws and round handling."""

    auto_draw: bool = Field(
        default=True,
        description="Keep the best card automatically instead of asking a chooser"
    )
    messaging: bool = Field(
        default=True,
        description="Post a chat message for every initiative draw"
    )
    reset_each_round: bool = Field(
        default=False,
        description="Clear and redraw initiative at the start of every new round"
    )
    reset_deck_on_round_start: bool = Field(
        default=False,
        description="Reshuffle the initiative deck when combat starts and when a round is reset"
    )
    duplicate_on_start: bool = Field(
        default=False,
        description="Duplicate combatants whose speed is above 1 when combat starts"
    )
    slow_and_fast_actions: bool = Field(
        default=True,
        description="Remove slow/fast action markers from every combatant when combat ends"
    )
    sort_direction: SortDirection = Field(
        default=SortDirection.ASCENDING,
        description="Ascending: the lowest card acts first"
    )
    follower_offset: float = Field(
        default=0.125,
        gt=0,
        lt=1,
        description="Offset added to a group follower's card value so the leader acts first"
    )
    deck_size: int = Field(default=10, ge=1, description="Number of cards in a new initiative deck")
    draw_sound: str = Field(default="sounds/card-flip.wav", description="Sound played after a draw")
    draw_sound_volume: float = Field(default=0.75, ge=0, le=1)

    def combatant_sort_order_modifier(self) -> float:
        """Signed offset that places followers right after their leader."""
        if self.sort_direction == SortDirection.ASCENDING:
            return self.follower_offset
        return -self.follower_offset


def load_settings(path: str | Path | None = None) -> InitiativeSettings:
    """Load settings from a YAML file, writing the defaults if it is missing.

    Args:
        path: Settings file path. Defaults to ``initiative.yaml`` in the
              current directory.

    Returns:
        The validated settings.

    Raises:
        pydantic.ValidationError: If the file holds invalid values.
    """
    path = Path(path or DEFAULT_SETTINGS_FILE)

    if not path.exists():
        settings = InitiativeSettings()
        save_settings(settings, path)
        logger.info("Created default initiative settings at %s", path)
        return settings

    with open(path) as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return InitiativeSettings()
    if not isinstance(data, dict):
        logger.warning("Invalid initiative settings in %s, using defaults", path)
        return InitiativeSettings()

    settings = InitiativeSettings.model_validate(data)
    logger.debug("Initiative settings loaded from %s", path)
    return settings


def save_settings(settings: InitiativeSettings, path: str | Path) -> None:
    """Write settings back to YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as fh:
        yaml.safe_dump(
            settings.model_dump(mode="json"),
            fh,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
