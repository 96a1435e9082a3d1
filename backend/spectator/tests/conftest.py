import pytest

from scoring.session.keeper import ScoreKeeper
from shared.storage import InMemoryKeyValueStore


@pytest.fixture
def keeper() -> ScoreKeeper:
    return ScoreKeeper(InMemoryKeyValueStore())
