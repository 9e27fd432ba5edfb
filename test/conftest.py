import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
GLYPH_DATA_DIR = ROOT / "glyph_data"

sys.path.insert(0, str(ROOT))


@pytest.fixture(scope="session")
def glyph_data():
    from build_font import load_glyph_data

    return load_glyph_data(GLYPH_DATA_DIR)


@pytest.fixture
def positions():
    from glyph_blocks import InternalPositions

    return InternalPositions()
