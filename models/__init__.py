"""Models package — database, dataclasses, and enums."""

from models.database import Database
from models.milestone import Milestone, DiscoveredMilestones
from models.plan import ChapterPlan, NarrativePlan
from models.chapter import ChapterSummary, StudyBlock, HandbookRecord, ChapterRecord
from models.concept import TopicContext, ConceptNode, ConceptEdge, ConceptPlan, PageRecord, EdgeRecord
from models.enums import (
    NarrativeVoice,
    ChapterType,
    PointOfView,
    StudyBlockKind,
    LinkMode,
    ConceptKind,
    EdgeType,
    PageKind,
)

__all__ = [
    "Database",
    "Milestone",
    "DiscoveredMilestones",
    "ChapterPlan",
    "NarrativePlan",
    "ChapterSummary",
    "StudyBlock",
    "HandbookRecord",
    "ChapterRecord",
    "TopicContext",
    "ConceptNode",
    "ConceptEdge",
    "ConceptPlan",
    "PageRecord",
    "EdgeRecord",
    "NarrativeVoice",
    "ChapterType",
    "PointOfView",
    "StudyBlockKind",
    "LinkMode",
    "ConceptKind",
    "EdgeType",
    "PageKind",
]
