"""
Pytest configuration and fixtures for card-initiative tests.
"""

import os
import sys
import tempfile
from pathlib import Path
import pytest

# Add src directory to Python path to allow importing card_initiative
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# The MCP server creates its data directory on import; keep it out of the checkout
os.environ.setdefault("CARD_INITIATIVE_DATA_DIR", tempfile.mkdtemp(prefix="card-initiative-"))


# Configure anyio to only use asyncio (not trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"
