"""Test configuration."""
import os
import tempfile
from pathlib import Path
from typing import List

import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="dailyvocab-test-"))
os.environ.setdefault("JUDGE_BACKEND", "stub")

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from dailyvocab.config import ensure_directories
from dailyvocab.models.word_models import WordEntry
from dailyvocab.services.judges import StubJudge
from dailyvocab.services.phase_machine import PhaseMachine
from dailyvocab.services.progress_store import MemorySlot, ProgressRepository

fake = Faker()
Faker.seed(1234)


def make_bank(size: int = 160) -> List[WordEntry]:
    """Synthetic bank with stable terms word000, word001, ..."""
    return [
        WordEntry(
            term=f"word{i:03d}",
            definition=fake.sentence(nb_words=8),
            connotation_note=fake.sentence(nb_words=6),
            etymology=fake.sentence(nb_words=5),
            tier=(i % 3) + 1,
        )
        for i in range(size)
    ]


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment before each test."""
    ensure_directories()
    yield


@pytest.fixture
def bank() -> List[WordEntry]:
    return make_bank()


@pytest.fixture
def entry() -> WordEntry:
    return WordEntry(
        term="ephemeral",
        definition="Lasting for a very short time.",
        connotation_note="Neutral to wistful; often tinged with beauty or regret.",
        etymology="Greek ephemeros 'lasting only a day'.",
        tier=2,
    )


@pytest.fixture
def judge() -> StubJudge:
    return StubJudge()


@pytest.fixture
def machine(judge: StubJudge) -> PhaseMachine:
    return PhaseMachine(judge, max_input_length=1000, dismiss_threshold=4)


@pytest.fixture
def slot() -> MemorySlot:
    return MemorySlot()


@pytest.fixture
def repository(slot: MemorySlot) -> ProgressRepository:
    return ProgressRepository(slot, default_count=5, allowed_counts=(3, 4, 5))
