"""Agents package — generation stages of the handbook pipeline."""

from agents.base_agent import BaseAgent
from agents.milestone_agent import MilestoneDiscoverer
from agents.planner_agent import NarrativePlanner
from agents.style_example_agent import StyleExampleAgent
from agents.toc_agent import HandbookWriter
from agents.writer_agent import ChapterGenerator, ChapterResult
from agents.study_section_agent import StudySectionAgent
from agents.concept_planner_agent import ConceptPlanner
from agents.concept_page_agent import ConceptPageWriter
from agents.sources_agent import SourcesAgent

__all__ = [
    "BaseAgent",
    "MilestoneDiscoverer",
    "NarrativePlanner",
    "StyleExampleAgent",
    "HandbookWriter",
    "ChapterGenerator",
    "ChapterResult",
    "StudySectionAgent",
    "ConceptPlanner",
    "ConceptPageWriter",
    "SourcesAgent",
]
