"""LangGraph StateGraph: orchestrates the handbook generation workflow."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from langgraph.graph import StateGraph, END

from agents.milestone_agent import MilestoneDiscoverer
from agents.planner_agent import NarrativePlanner
from agents.study_section_agent import StudySectionAgent
from agents.toc_agent import HandbookWriter
from agents.writer_agent import ChapterGenerator
from config.settings import Settings, get_settings
from models.enums import LinkMode, coerce_enum
from models.plan import NarrativePlan
from tools.agent_sdk_client import AgentSDKClient
from tools.handbook_files import HandbookPaths, find_latest_handbook, read_plan
from tools.plan_merger import ensure_plan_has_milestones, suggest_chapter_count
from tools.study_section_template import LinkStrategy
from tools.text_utils import count_words

from workflow.state import HandbookWorkflowState
from workflow.conditions import (
    route_after_init,
    route_after_plan,
    route_after_handbook,
    route_after_chapter,
    route_after_advance,
    route_after_study_section,
)

logger = logging.getLogger(__name__)


class HandbookPipeline:
    """Owns the agents for one run and exposes them as graph nodes.

    Milestones → plan → handbook file → chapters (sequential) → study section.
    Every node returns a partial state update; failures are reported through
    the ``error`` field and routed to ``handle_error``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm_client: Optional[AgentSDKClient] = None,
        callback=None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm_client or AgentSDKClient(self.settings)
        self.callback = callback

        self.milestones = MilestoneDiscoverer(self.llm, self.settings)
        self.planner = NarrativePlanner(self.llm, self.settings)
        self.handbook_writer = HandbookWriter(self.llm, self.settings)
        self.chapters = ChapterGenerator(self.llm, self.settings)
        self.study_section = StudySectionAgent(self.llm, self.settings)

    # -----------------------------------------------------------------------
    # Node functions
    # -----------------------------------------------------------------------

    async def initialize(self, state: HandbookWorkflowState) -> dict:
        """Validate inputs and pick up an existing handbook when resuming."""
        logger.info("Entering node: initialize")
        work_title = (state.get("work_title") or "").strip()
        author = (state.get("author") or "").strip()
        base_updates = {
            "current_chapter": 1,
            "chapters_done": 0,
            "chapters_generated": 0,
            "summaries": [],
            "should_stop": False,
            "error": "",
            "last_node": "initialize",
        }
        if not work_title:
            return {**base_updates, "error": "Work title is required"}
        if not author:
            return {**base_updates, "error": "Author is required"}

        out_dir = state.get("out_dir") or str(self.settings.output_dir)
        base_updates.update({"work_title": work_title, "author": author, "out_dir": out_dir})

        if state.get("resume"):
            latest = find_latest_handbook(out_dir, work_title)
            if latest is not None:
                paths = HandbookPaths(latest)
                try:
                    plan = read_plan(paths.plan_path)
                except (OSError, ValueError) as e:
                    logger.warning("Cannot resume %s, plan unreadable (%s); starting over", latest.name, e)
                else:
                    logger.info("Resuming handbook %s (%d chapters)", latest.name, len(plan.chapters))
                    return {
                        **base_updates,
                        "handbook_path": str(latest),
                        "plan": plan,
                        "chapter_count": len(plan.chapters),
                    }
            else:
                logger.info("Nothing to resume for %r; starting a new handbook", work_title)

        return base_updates

    async def plan_handbook(self, state: HandbookWorkflowState) -> dict:
        """Discover milestones, plan the narrative and merge the two."""
        logger.info("Entering node: plan_handbook")
        work_title = state["work_title"]
        author = state["author"]
        target_minutes = state.get("target_minutes")
        if target_minutes is None:
            target_minutes = self.settings.default_target_minutes
        desired = state.get("desired_chapters") or None
        refresh = bool(state.get("refresh_milestones"))

        try:
            if desired:
                # Count is fixed by the caller, so discovery and planning are independent
                count = suggest_chapter_count(
                    target_minutes, 0, desired,
                    self.settings.min_chapters, self.settings.max_chapters,
                )
                discovered, plan = await asyncio.gather(
                    self.milestones.discover(work_title, author, force=refresh),
                    self.planner.plan(work_title, author, count),
                )
            else:
                discovered = await self.milestones.discover(work_title, author, force=refresh)
                count = suggest_chapter_count(
                    target_minutes, len(discovered.milestones), None,
                    self.settings.min_chapters, self.settings.max_chapters,
                )
                plan = await self.planner.plan(work_title, author, count)
        except Exception as e:
            return {"error": f"Planning failed: {e}", "last_node": "plan_handbook"}

        merged = ensure_plan_has_milestones(plan, discovered.milestones)
        if len(merged.chapters) > len(plan.chapters):
            logger.info(
                "Added %d milestone chapters to the plan (%d total)",
                len(merged.chapters) - len(plan.chapters), len(merged.chapters),
            )
        return {
            "milestones": discovered,
            "plan": merged,
            "chapter_count": len(merged.chapters),
            "last_node": "plan_handbook",
        }

    async def write_handbook(self, state: HandbookWorkflowState) -> dict:
        """Write the handbook file (intro + table of contents) and plan file."""
        logger.info("Entering node: write_handbook")
        try:
            paths = await self.handbook_writer.write_handbook(
                state["out_dir"], state["work_title"], state["author"], state["plan"],
            )
        except Exception as e:
            return {"error": f"Handbook file failed: {e}", "last_node": "write_handbook"}
        return {"handbook_path": str(paths.markdown_path), "last_node": "write_handbook"}

    async def write_chapter(self, state: HandbookWorkflowState) -> dict:
        """Write (or reuse) the current chapter file."""
        logger.info("Entering node: write_chapter")
        plan: NarrativePlan = state["plan"]
        index = state.get("current_chapter", 1)
        chapter_plan = plan.chapter(index)
        if chapter_plan is None:
            return {"error": f"Chapter {index} is not in the plan", "last_node": "write_chapter"}

        following = plan.chapter(index + 1)
        minutes = state.get("minutes_per_chapter")
        if minutes is None:
            minutes = self.settings.minutes_per_chapter
        try:
            result = await self.chapters.write_chapter(
                HandbookPaths(Path(state["handbook_path"])),
                chapter_plan,
                plan,
                list(state.get("summaries", [])),
                following.title if following else None,
                minutes,
                state["work_title"],
                state["author"],
                force=bool(state.get("force")),
            )
        except Exception as e:
            return {"error": f"Chapter {index} failed: {e}", "last_node": "write_chapter"}

        return {
            "summaries": [*state.get("summaries", []), result.summary],
            "chapters_done": state.get("chapters_done", 0) + 1,
            "chapters_generated": state.get("chapters_generated", 0) + int(result.generated),
            "last_word_count": count_words(result.markdown),
            "last_node": "write_chapter",
        }

    async def advance_chapter(self, state: HandbookWorkflowState) -> dict:
        """Advance to the next chapter number."""
        logger.info("Entering node: advance_chapter")
        next_ch = state["current_chapter"] + 1
        total = state.get("chapter_count", 0)
        if next_ch > total:
            logger.info("All %d chapters completed!", total)
            return {"should_stop": True, "current_chapter": next_ch, "last_node": "advance_chapter"}
        logger.info("Advancing to chapter %d", next_ch)
        return {"current_chapter": next_ch, "last_node": "advance_chapter"}

    async def write_study_section(self, state: HandbookWorkflowState) -> dict:
        logger.info("Entering node: write_study_section")
        mode = coerce_enum(LinkMode, state.get("link_mode") or self.settings.link_mode, LinkMode.HASH)
        strategy = LinkStrategy.none() if mode == LinkMode.NONE else LinkStrategy.hash()
        try:
            path = await self.study_section.write(
                HandbookPaths(Path(state["handbook_path"])),
                state["work_title"],
                state["author"],
                list(state.get("summaries", [])),
                strategy,
                force=bool(state.get("force")),
            )
        except Exception as e:
            return {"error": f"Study section failed: {e}", "last_node": "write_study_section"}
        return {"study_section_path": str(path), "last_node": "write_study_section"}

    async def handle_error(self, state: HandbookWorkflowState) -> dict:
        """Stop the run. Transient failures were already retried by the client."""
        logger.info("Entering node: handle_error")
        logger.error(
            "Workflow error in %s (fatal): %s",
            state.get("last_node", "?"), state.get("error", "Unknown error"),
        )
        return {"should_stop": True}

    # -----------------------------------------------------------------------
    # Graph construction
    # -----------------------------------------------------------------------

    def build_graph(self):
        """Build and return the compiled LangGraph workflow."""
        graph = StateGraph(HandbookWorkflowState)

        graph.add_node("initialize", self.initialize)
        graph.add_node("plan_handbook", self.plan_handbook)
        graph.add_node("write_handbook", self.write_handbook)
        graph.add_node("write_chapter", self.write_chapter)
        graph.add_node("advance_chapter", self.advance_chapter)
        graph.add_node("write_study_section", self.write_study_section)
        graph.add_node("handle_error", self.handle_error)

        graph.set_entry_point("initialize")

        # After init -> plan (new) or straight to chapters (resume)
        graph.add_conditional_edges(
            "initialize",
            route_after_init,
            {
                "plan_handbook": "plan_handbook",
                "write_chapter": "write_chapter",
                "handle_error": "handle_error",
            },
        )
        graph.add_conditional_edges(
            "plan_handbook",
            route_after_plan,
            {"write_handbook": "write_handbook", "handle_error": "handle_error"},
        )
        graph.add_conditional_edges(
            "write_handbook",
            route_after_handbook,
            {"write_chapter": "write_chapter", "handle_error": "handle_error"},
        )
        graph.add_conditional_edges(
            "write_chapter",
            route_after_chapter,
            {"advance_chapter": "advance_chapter", "handle_error": "handle_error"},
        )
        # After advance -> next chapter or study section
        graph.add_conditional_edges(
            "advance_chapter",
            route_after_advance,
            {"write_chapter": "write_chapter", "write_study_section": "write_study_section"},
        )
        graph.add_conditional_edges(
            "write_study_section",
            route_after_study_section,
            {"handle_error": "handle_error", "__end__": END},
        )

        graph.add_edge("handle_error", END)
        return graph.compile()

    async def run(self, initial_state: HandbookWorkflowState) -> dict:
        """Run the compiled graph, streaming progress to the callback if set."""
        app = self.build_graph()

        # Each chapter cycle uses 2 nodes; leave headroom for setup nodes
        expected = initial_state.get("desired_chapters") or self.settings.max_chapters
        recursion_limit = max(50, expected * 4 + 30)
        config = {"recursion_limit": recursion_limit}

        if self.callback is None:
            return await app.ainvoke(initial_state, config=config)
        return await _run_with_callback(app, initial_state, config, self.callback)


async def run_workflow(
    work_title: str,
    author: str,
    target_minutes: Optional[float] = None,
    desired_chapters: Optional[int] = None,
    minutes_per_chapter: Optional[float] = None,
    out_dir: Optional[str] = None,
    link_mode: Optional[str] = None,
    force: bool = False,
    resume: bool = False,
    refresh_milestones: bool = False,
    settings: Optional[Settings] = None,
    llm_client: Optional[AgentSDKClient] = None,
    callback=None,
) -> dict:
    """Build and run the full handbook workflow.

    Args:
        work_title: Title of the work being retold.
        author: Author of the work.
        target_minutes: Reading time of the whole handbook (default from settings).
        desired_chapters: Fixed chapter count; derived from milestones when omitted.
        minutes_per_chapter: Reading time per chapter (default from settings).
        out_dir: Output directory (default ``settings.output_dir``).
        link_mode: "hash" or "none" for study section chapter links.
        force: Regenerate existing chapter and study section files.
        resume: Continue the latest handbook of this work instead of starting a new one.
        refresh_milestones: Ignore the milestone cache.
        settings: Injected settings (default ``get_settings()``).
        llm_client: Injected client (default ``AgentSDKClient(settings)``).
        callback: Optional WorkflowCallback for progress reporting.

    Returns:
        Final workflow state dict.
    """
    pipeline = HandbookPipeline(settings=settings, llm_client=llm_client, callback=callback)
    initial_state: HandbookWorkflowState = {
        "work_title": work_title,
        "author": author,
        "target_minutes": (
            pipeline.settings.default_target_minutes if target_minutes is None else target_minutes
        ),
        "desired_chapters": desired_chapters or 0,
        "minutes_per_chapter": (
            pipeline.settings.minutes_per_chapter if minutes_per_chapter is None else minutes_per_chapter
        ),
        "out_dir": out_dir or str(pipeline.settings.output_dir),
        "link_mode": link_mode or pipeline.settings.link_mode,
        "force": force,
        "resume": resume,
        "refresh_milestones": refresh_milestones,
    }

    logger.info("Starting workflow: work=%r, author=%s", work_title, author)
    final_state = await pipeline.run(initial_state)
    logger.info("Workflow completed: %s", pipeline.llm.get_usage_summary())
    return final_state


async def _run_with_callback(app, initial_state: dict, config, callback) -> dict:
    """Run the workflow using astream() and emit progress callbacks.

    Returns:
        Accumulated final state dict.
    """
    accumulated: dict = dict(initial_state)
    prev_done = 0

    async for event in app.astream(initial_state, config=config):
        # Each event is {node_name: state_update_dict}
        for node_name, node_update in event.items():
            if node_name == "__end__":
                continue

            if isinstance(node_update, dict):
                accumulated.update(node_update)

            callback.on_node_exit(node_name, accumulated)

            done = accumulated.get("chapters_done", 0)
            if done > prev_done:
                callback.on_chapter_complete(
                    accumulated.get("current_chapter", done),
                    accumulated.get("chapter_count", 0),
                    accumulated.get("last_word_count", 0),
                )
                prev_done = done

            if accumulated.get("error") and node_name != "handle_error":
                callback.on_error(node_name, accumulated["error"])

    callback.on_workflow_complete(accumulated)
    return accumulated
