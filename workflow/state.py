"""LangGraph workflow state definition."""

from typing import TypedDict


class HandbookWorkflowState(TypedDict, total=False):
    """Global state shared by all workflow nodes.

    Fields are grouped logically:
    - Inputs: work_title, author, target_minutes, desired_chapters, ...
    - Planning: milestones, plan, chapter_count
    - Artifacts: handbook_path, study_section_path
    - Chapter tracking: current_chapter, chapters_done, chapters_generated, summaries
    - Control: error, should_stop, last_node
    """

    # Inputs
    work_title: str
    author: str
    target_minutes: float
    desired_chapters: int  # 0 = derive from target_minutes and milestones
    minutes_per_chapter: float
    out_dir: str
    link_mode: str  # "hash" or "none"
    force: bool
    resume: bool
    refresh_milestones: bool

    # Planning
    milestones: object  # DiscoveredMilestones
    plan: object        # NarrativePlan (merged)
    chapter_count: int

    # Artifacts
    handbook_path: str
    study_section_path: str

    # Chapter tracking
    current_chapter: int
    chapters_done: int       # written or reused
    chapters_generated: int  # actually sent to the generator
    summaries: list          # list[ChapterSummary], in chapter order
    last_word_count: int

    # Control flow
    error: str
    should_stop: bool
    last_node: str


class ConceptWorkflowState(TypedDict, total=False):
    """State of the concept graph run: topic → plan → concept pages → sources."""

    # Inputs
    topic: object  # TopicContext
    force: bool
    plan_only: bool
    with_sources: bool
    sources_count: int

    # Planning
    topic_id: int
    concept_plan: object  # ConceptPlan, depths computed
    plan_path: str
    plan_reused: bool

    # Pages
    page_ids: dict  # concept node id -> page id
    pages_written: int
    pages_reused: int
    edges_added: int
    sources_page_id: int

    # Control flow
    error: str
    last_node: str
