"""Conditional routing functions for the LangGraph workflow."""

from workflow.state import ConceptWorkflowState, HandbookWorkflowState


def route_after_init(state: HandbookWorkflowState) -> str:
    """Route after initialization: plan a new handbook or resume an existing one."""
    if state.get("error"):
        return "handle_error"
    if state.get("handbook_path") and state.get("plan") is not None:
        return "write_chapter"
    return "plan_handbook"


def route_after_plan(state: HandbookWorkflowState) -> str:
    if state.get("error"):
        return "handle_error"
    return "write_handbook"


def route_after_handbook(state: HandbookWorkflowState) -> str:
    if state.get("error"):
        return "handle_error"
    return "write_chapter"


def route_after_chapter(state: HandbookWorkflowState) -> str:
    """A failed chapter stops the run; earlier chapter files stay on disk."""
    if state.get("error"):
        return "handle_error"
    return "advance_chapter"


def route_after_advance(state: HandbookWorkflowState) -> str:
    """Route after advancing: next chapter or the study section."""
    if state.get("should_stop", False):
        return "write_study_section"

    current = state.get("current_chapter", 0)
    total = state.get("chapter_count", 0)
    if current > total:
        return "write_study_section"
    return "write_chapter"


def route_after_study_section(state: HandbookWorkflowState) -> str:
    if state.get("error"):
        return "handle_error"
    return "__end__"


# ---- Concept graph run ----

def route_after_concept_init(state: ConceptWorkflowState) -> str:
    if state.get("error"):
        return "handle_error"
    return "plan_concepts"


def route_after_concept_plan(state: ConceptWorkflowState) -> str:
    if state.get("error"):
        return "handle_error"
    if state.get("plan_only"):
        return "__end__"
    return "write_pages"


def route_after_pages(state: ConceptWorkflowState) -> str:
    if state.get("error"):
        return "handle_error"
    if state.get("with_sources", True):
        return "write_sources"
    return "__end__"


def route_after_sources(state: ConceptWorkflowState) -> str:
    if state.get("error"):
        return "handle_error"
    return "__end__"
