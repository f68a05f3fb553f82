"""Shared pytest fixtures for the studyhandbook test suite."""

import pytest
from unittest.mock import MagicMock, AsyncMock


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite database path."""
    return tmp_path / "test_handbooks.db"


@pytest.fixture
def db(tmp_db_path):
    """Return an initialized Database instance backed by a temp file."""
    from models.database import Database
    return Database(tmp_db_path)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return a Settings instance with all paths pointing to tmp_path."""
    from config.settings import Settings
    return Settings(
        _env_file=None,
        output_dir=tmp_path / "handbooks",
        milestone_cache_dir=tmp_path / "milestones",
        concept_dir=tmp_path / "concepts",
        sqlite_db_path=tmp_path / "handbooks.db",
        log_dir=tmp_path / "logs",
    )


# ---------------------------------------------------------------------------
# LLM Client mocks
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_llm():
    """Return a MagicMock replacing AgentSDKClient."""
    llm = MagicMock()
    llm.generate_markdown = AsyncMock(return_value="Some generated text.")
    llm.generate_structured = AsyncMock(return_value={})
    llm.get_usage_summary.return_value = {"total_calls": 1, "failed_calls": 0}
    return llm


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_plan():
    """A three-chapter plan: scene, diary, letter."""
    from models.enums import ChapterType, NarrativeVoice, PointOfView
    from models.plan import ChapterPlan, NarrativePlan
    return NarrativePlan(
        narrative_voice=NarrativeVoice.DIARY_AND_SCENES,
        narrative_voice_reasoning="Intimate access to the protagonist",
        style_inspiration="Psychological realism",
        style_reasoning="Close to the source",
        overall_tone="melancholic",
        spiritual_core="The cost of ambition.",
        interpretive_axes=["love–duty"],
        chapters=[
            ChapterPlan(1, "The Arrival", "Place: the station; time: dawn; who: Anna",
                        ChapterType.SCENE, PointOfView.THIRD_PERSON),
            ChapterPlan(2, "Night Notes", "Anna writes about the ball",
                        ChapterType.DIARY, PointOfView.FIRST_PERSON_PROTAGONIST, "Anna"),
            ChapterPlan(3, "A Letter Home", "Anna writes to her brother",
                        ChapterType.LETTER, PointOfView.FIRST_PERSON_PROTAGONIST, "Anna"),
        ],
    )


@pytest.fixture
def sample_milestones():
    from models.milestone import Milestone
    return [
        Milestone(id="ball", title="The Ball", description="The great ball", must_be_scene=True,
                  keywords=["ball", "dance"]),
        Milestone(id="race", title="The Horse Race", description="Vronsky falls at the race",
                  keywords=["race"]),
    ]
