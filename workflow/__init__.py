"""Workflow package — LangGraph graphs, state, conditions, and callbacks."""

from workflow.graph import HandbookPipeline, run_workflow
from workflow.concept_pipeline import ConceptPipeline, run_concept_workflow
from workflow.state import ConceptWorkflowState, HandbookWorkflowState
from workflow.conditions import (
    route_after_init,
    route_after_plan,
    route_after_handbook,
    route_after_chapter,
    route_after_advance,
    route_after_study_section,
    route_after_concept_init,
    route_after_concept_plan,
    route_after_pages,
    route_after_sources,
)
from workflow.callbacks import WorkflowCallback, LoggingCallback, RichProgressCallback

__all__ = [
    "HandbookPipeline",
    "run_workflow",
    "HandbookWorkflowState",
    "ConceptPipeline",
    "run_concept_workflow",
    "ConceptWorkflowState",
    "route_after_init",
    "route_after_plan",
    "route_after_handbook",
    "route_after_chapter",
    "route_after_advance",
    "route_after_study_section",
    "route_after_concept_init",
    "route_after_concept_plan",
    "route_after_pages",
    "route_after_sources",
    "WorkflowCallback",
    "LoggingCallback",
    "RichProgressCallback",
]
