import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    from callscore.config import get_settings

    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    for name in ("OPENAI_API_KEY", "ELEVENLABS_API_KEY", "STRIPE_SECRET_KEY"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def seed_library(database) -> None:
    from callscore.store.tables import ObjectionLibraryRow

    with database.session() as session:
        session.add_all(
            [
                ObjectionLibraryRow(
                    id="obj-001",
                    name="Price too high",
                    category="price",
                    industry="saas",
                    description="Prospect says the product costs too much.",
                    handling_strategies=["Reframe around ROI", "Offer a pilot"],
                ),
                ObjectionLibraryRow(
                    id="obj-002",
                    name="No budget this quarter",
                    category="price",
                    industry="saas",
                ),
                ObjectionLibraryRow(
                    id="obj-003",
                    name="Bad timing",
                    category="time",
                    industry="",
                ),
            ]
        )


@pytest.fixture
def database():
    from callscore.store.database import Database

    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def repository(database):
    from callscore.store.repository import AnalysisRepository

    seed_library(database)
    return AnalysisRepository(database)


@pytest.fixture
def sales_call():
    from callscore.models.transcript import TranscriptEntry

    turns = [
        ("user", "Hi Sarah, thanks for taking the call. We help sales teams save 10 hours a week on reporting."),
        ("agent", "Sure, what is this about exactly?"),
        ("user", "What does your current reporting process look like today?"),
        ("agent", "We pull numbers from three spreadsheets every Friday and it takes most of the afternoon."),
        ("user", "How is that affecting your team's pipeline reviews?"),
        ("agent", "Honestly it sounds great but it's too expensive for us right now."),
        (
            "user",
            "I hear you. Most teams recover the cost within two months because reps stop "
            "building reports by hand, and we can start with a smaller pilot.",
        ),
        ("agent", "Okay, that could work."),
        ("user", "Great. Can we schedule a demo for Thursday? I will send you a calendar invite as the next step."),
        ("agent", "Yes, Thursday works."),
    ]
    return [TranscriptEntry(role=role, text=text) for role, text in turns]


@pytest.fixture
def seed():
    return seed_library
