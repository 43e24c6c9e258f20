import sys
from pathlib import Path

import pytest

# Ensure the project root is on sys.path so `import app` works in tests.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.schemas import CommissionIn  # noqa: E402


@pytest.fixture
def make_inputs():
    """Build a CommissionIn from keyword overrides of the form's defaults."""

    def _make(**overrides) -> CommissionIn:
        return CommissionIn(**overrides)

    return _make
