"""
Card Initiative MCP Server
Card-draw initiative and round tracking for tabletop combat, built with FastMCP.
"""

import logging
import os
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field

from .config import InitiativeSettings, load_settings
from .errors import InitiativeError
from .initiative import Collaborators, RoundLifecycle
from .models import Combatant, CombatState, KeepState
from .storage import JsonCombatStorage

logger = logging.getLogger("card-initiative")

env_loaded = load_dotenv()

logging.basicConfig(
    level=os.getenv("CARD_INITIATIVE_LOG_LEVEL", "INFO").upper(),
    )

if not env_loaded:
    logger.debug("No .env file found, using environment and defaults.")

data_path = Path(os.getenv("CARD_INITIATIVE_DATA_DIR", "initiative_data")).resolve()
logger.debug(f"📂 Data path: {data_path}")

settings_path = os.getenv("CARD_INITIATIVE_SETTINGS")
settings: InitiativeSettings = load_settings(settings_path) if settings_path else InitiativeSettings()

storage = JsonCombatStorage(data_dir=data_path)
logger.debug("✅ Storage layer initialized")

# One lifecycle per loaded combat, so each combat keeps its own lock and history
_lifecycles: dict[str, RoundLifecycle] = {}

mcp = FastMCP(
    name="card-initiative"
)


def _get_lifecycle(combat_id: str) -> RoundLifecycle:
    """Return the lifecycle for a combat, loading it from storage on first use."""
    lifecycle = _lifecycles.get(combat_id)
    if lifecycle is None:
        combat = storage.load_combat(combat_id)
        lifecycle = RoundLifecycle(
            combat,
            settings,
            Collaborators(transport=storage),
        )
        _lifecycles[combat_id] = lifecycle
    return lifecycle


def _format_turn_order(combat: CombatState) -> str:
    """Render the turn order of a combat as a numbered list."""
    header = f"**{combat.name}** ({combat.phase.value}) - Round {combat.round}"
    turns = combat.turns
    if not turns:
        return f"{header}\n\nNo combatants."

    lines = []
    for i, c in enumerate(turns):
        card = c.card_name if c.has_card else "no card"
        marks = []
        if i == combat.turn:
            marks.append("◀ current")
        if c.is_defeated:
            marks.append("defeated")
        if c.lock_initiative:
            marks.append("locked")
        suffix = f" ({', '.join(marks)})" if marks else ""
        lines.append(f"{i + 1}. {c.name} [{card}]{suffix}")
    return f"{header}\n\n" + "\n".join(lines)


def _error(e: Exception) -> str:
    logger.error(f"❌ {e}")
    return f"❌ {e}"


# Combat Management Tools
@mcp.tool
def create_combat(
    name: Annotated[str, Field(description="Name of the encounter")] = "Combat",
) -> str:
    """Create a new card-initiative combat with a fresh initiative deck."""
    combat = storage.create_combat(name, settings)
    return f"✅ Created combat '{combat.name}' (id: {combat.id}) with a {combat.deck.available_cards}-card deck."


@mcp.tool
def add_combatant(
    combat_id: Annotated[str, Field(description="Combat id")],
    name: Annotated[str, Field(description="Combatant name")],
    cards_to_draw: Annotated[int, Field(description="Cards drawn per initiative draw", ge=1)] = 1,
    speed: Annotated[int, Field(description="Turns per round", ge=1)] = 1,
    keep_state: Annotated[KeepState, Field(description="Keep the highest or the lowest card")] = KeepState.HIGHEST,
    group_id: Annotated[str | None, Field(description="Group shared with a leader")] = None,
    is_group_leader: Annotated[bool, Field(description="Draws for the whole group")] = False,
    lock_initiative: Annotated[bool, Field(description="Exempt from redraws and resets")] = False,
    hidden: Annotated[bool, Field(description="Draw messages are whispered to the GM")] = False,
) -> str:
    """Add a combatant to a combat."""
    try:
        lifecycle = _get_lifecycle(combat_id)
    except (FileNotFoundError, InitiativeError) as e:
        return _error(e)

    combatant = lifecycle.combat.add(
        Combatant(
            name=name,
            cards_to_draw=cards_to_draw,
            speed=speed,
            keep_state=keep_state,
            group_id=group_id,
            is_group_leader=is_group_leader,
            lock_initiative=lock_initiative,
            hidden=hidden,
        )
    )
    storage.save_combat(lifecycle.combat)
    return f"✅ Added {combatant.name} (id: {combatant.id})."


@mcp.tool
async def start_combat(
    combat_id: Annotated[str, Field(description="Combat id")],
) -> str:
    """Start a combat: duplicate fast combatants, reshuffle and draw initiative as configured."""
    try:
        lifecycle = _get_lifecycle(combat_id)
        combat = await lifecycle.start_combat()
    except (FileNotFoundError, InitiativeError) as e:
        return _error(e)
    storage.save_combat(combat)
    return "**Combat Started!**\n\n" + _format_turn_order(combat)


@mcp.tool
async def draw_initiative(
    combat_id: Annotated[str, Field(description="Combat id")],
    combatant_ids: Annotated[list[str] | None, Field(description="Combatants to draw for (all if omitted)")] = None,
) -> str:
    """Draw (or redraw) initiative cards."""
    try:
        lifecycle = _get_lifecycle(combat_id)
        ids = combatant_ids or [c.id for c in lifecycle.combat.combatants]
        combat = await lifecycle.roll_initiative(ids, commit_turn=True)
    except (FileNotFoundError, InitiativeError) as e:
        return _error(e)
    storage.save_combat(combat)
    return _format_turn_order(combat)


@mcp.tool
async def next_round(
    combat_id: Annotated[str, Field(description="Combat id")],
) -> str:
    """Advance to the next round."""
    try:
        combat = await _get_lifecycle(combat_id).next_round()
    except (FileNotFoundError, InitiativeError) as e:
        return _error(e)
    storage.save_combat(combat)
    return _format_turn_order(combat)


@mcp.tool
async def previous_round(
    combat_id: Annotated[str, Field(description="Combat id")],
) -> str:
    """Go back to the previous round, restoring its turn order."""
    try:
        combat = await _get_lifecycle(combat_id).previous_round()
    except (FileNotFoundError, InitiativeError) as e:
        return _error(e)
    storage.save_combat(combat)
    return _format_turn_order(combat)


@mcp.tool
async def reset_initiative(
    combat_id: Annotated[str, Field(description="Combat id")],
) -> str:
    """Clear initiative for every combatant that is not locked."""
    try:
        combat = await _get_lifecycle(combat_id).reset_all()
    except (FileNotFoundError, InitiativeError) as e:
        return _error(e)
    storage.save_combat(combat)
    return _format_turn_order(combat)


@mcp.tool
async def end_combat(
    combat_id: Annotated[str, Field(description="Combat id")],
) -> str:
    """End a combat."""
    try:
        combat = await _get_lifecycle(combat_id).end_combat()
    except (FileNotFoundError, InitiativeError) as e:
        return _error(e)
    storage.save_combat(combat)
    _lifecycles.pop(combat_id, None)
    return f"**Combat Ended.** {combat.name} lasted {combat.round} round(s)."


@mcp.tool
def show_turn_order(
    combat_id: Annotated[str, Field(description="Combat id")],
) -> str:
    """Show the current turn order."""
    try:
        lifecycle = _get_lifecycle(combat_id)
    except (FileNotFoundError, InitiativeError) as e:
        return _error(e)
    return _format_turn_order(lifecycle.combat)


def main() -> None:
    """Main entry point for the Card Initiative MCP Server."""
    mcp.run()

if __name__ == "__main__":
    main()
