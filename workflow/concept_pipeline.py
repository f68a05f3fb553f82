"""LangGraph StateGraph for concept graph runs: plan, concept pages, sources."""

import logging
from typing import Optional

from langgraph.graph import StateGraph, END

from agents.concept_page_agent import ConceptPageWriter
from agents.concept_planner_agent import ConceptPlanner
from agents.sources_agent import SourcesAgent, sources_title
from config.exceptions import HandbookError, ValidationError
from config.settings import Settings, get_settings
from models.concept import ConceptPlan, TopicContext
from models.database import Database
from models.enums import EdgeType, PageKind
from tools.agent_sdk_client import AgentSDKClient
from tools.concept_graph import concept_plan_path, read_concept_plan, write_concept_plan
from tools.concept_page import pick_variant

from workflow.state import ConceptWorkflowState
from workflow.conditions import (
    route_after_concept_init,
    route_after_concept_plan,
    route_after_pages,
    route_after_sources,
)

logger = logging.getLogger(__name__)


def concept_tags(node, variant_name: str) -> list[str]:
    return [
        f"concept.kind:{node.kind.value}",
        f"concept.variant:{variant_name}",
        f"concept.depth:{node.depth}",
        *(f"skill:{s}" for s in node.skills),
    ]


class ConceptPipeline:
    """Topic → concept plan (file) → concept pages and edges (database) → sources page.

    Pages are keyed by (topic, kind, title), so a rerun refreshes them in
    place. Existing pages and plan files are reused unless ``force`` is set.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm_client: Optional[AgentSDKClient] = None,
        db: Optional[Database] = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm_client or AgentSDKClient(self.settings)
        self.db = db or Database(self.settings.sqlite_db_path)

        self.planner = ConceptPlanner(self.llm, self.settings)
        self.pages = ConceptPageWriter(self.llm, self.settings)
        self.sources = SourcesAgent(self.llm, self.settings)

    # -----------------------------------------------------------------------
    # Node functions
    # -----------------------------------------------------------------------

    async def initialize(self, state: ConceptWorkflowState) -> dict:
        logger.info("Entering node: initialize")
        topic: Optional[TopicContext] = state.get("topic")
        base_updates = {
            "page_ids": {},
            "pages_written": 0,
            "pages_reused": 0,
            "edges_added": 0,
            "error": "",
            "last_node": "initialize",
        }
        if topic is None or not topic.title.strip():
            return {**base_updates, "error": "Topic title is required"}
        try:
            topic_id = self.db.upsert_topic(topic)
        except HandbookError as e:
            return {**base_updates, "error": f"Topic not saved: {e}"}
        return {**base_updates, "topic_id": topic_id}

    async def plan_concepts(self, state: ConceptWorkflowState) -> dict:
        """Load the saved plan of this topic, or ask the planner for a new one."""
        logger.info("Entering node: plan_concepts")
        topic: TopicContext = state["topic"]
        path = concept_plan_path(self.settings.concept_dir, topic.title)

        if path.exists() and not state.get("force"):
            try:
                plan = read_concept_plan(path)
            except (OSError, ValueError, HandbookError) as e:
                logger.warning("Ignoring unreadable concept plan %s: %s", path, e)
            else:
                logger.info("Loaded concept plan %s (%d concepts)", path.name, len(plan.nodes))
                return {"concept_plan": plan, "plan_path": str(path), "plan_reused": True,
                        "last_node": "plan_concepts"}

        try:
            plan = await self.planner.plan(topic)
            write_concept_plan(path, plan)
        except Exception as e:
            return {"error": f"Concept planning failed: {e}", "last_node": "plan_concepts"}
        logger.info("Concept plan saved: %s", path)
        return {"concept_plan": plan, "plan_path": str(path), "plan_reused": False,
                "last_node": "plan_concepts"}

    async def write_pages(self, state: ConceptWorkflowState) -> dict:
        """One page per concept, then the plan's edges between those pages."""
        logger.info("Entering node: write_pages")
        topic: TopicContext = state["topic"]
        topic_id = state["topic_id"]
        plan: ConceptPlan = state["concept_plan"]
        force = bool(state.get("force"))

        page_ids: dict[str, int] = {}
        written = reused = 0
        try:
            for node in plan.nodes:
                existing = None if force else self.db.get_page(topic_id, PageKind.CONCEPT, node.title)
                if existing is not None and existing.markdown.strip():
                    page_ids[node.id] = existing.id
                    reused += 1
                    logger.info("Reusing concept page %r (id=%d)", node.title, existing.id)
                    continue
                markdown = await self.pages.expand(node.title, topic)
                page_ids[node.id] = self.db.upsert_page(
                    topic_id, PageKind.CONCEPT, node.title, markdown,
                    concept_tags(node, pick_variant(node.title).name),
                )
                written += 1
                logger.info("Concept %s -> page %d (%s)", node.id, page_ids[node.id], node.title)

            added = 0
            for edge in plan.edges:
                source, target = page_ids.get(edge.source), page_ids.get(edge.target)
                if source is None or target is None:
                    logger.warning("Skipping edge %s -> %s (%s): no page", edge.source, edge.target, edge.type.value)
                    continue
                try:
                    added += int(self.db.add_edge(source, target, edge.type))
                except ValidationError as e:
                    # self-edge, or two concepts sharing one title
                    logger.warning("Skipping edge %s -> %s: %s", edge.source, edge.target, e)
        except Exception as e:
            return {"error": f"Concept pages failed: {e}", "page_ids": page_ids,
                    "pages_written": written, "pages_reused": reused, "last_node": "write_pages"}

        return {
            "page_ids": page_ids,
            "pages_written": written,
            "pages_reused": reused,
            "edges_added": added,
            "last_node": "write_pages",
        }

    async def write_sources(self, state: ConceptWorkflowState) -> dict:
        """Source material page, linked to every concept page by an example edge."""
        logger.info("Entering node: write_sources")
        topic: TopicContext = state["topic"]
        plan: ConceptPlan = state["concept_plan"]
        try:
            markdown = await self.sources.fetch(
                topic, [n.title for n in plan.nodes],
                state.get("sources_count"),
            )
            page_id = self.db.upsert_page(
                state["topic_id"], PageKind.SOURCE_MATERIAL, sources_title(topic.title),
                markdown, ["source_material"],
            )
            added = 0
            for concept_page_id in dict.fromkeys(state.get("page_ids", {}).values()):
                added += int(self.db.add_edge(page_id, concept_page_id, EdgeType.EXAMPLE))
        except Exception as e:
            return {"error": f"Sources failed: {e}", "last_node": "write_sources"}
        return {
            "sources_page_id": page_id,
            "edges_added": state.get("edges_added", 0) + added,
            "last_node": "write_sources",
        }

    async def handle_error(self, state: ConceptWorkflowState) -> dict:
        logger.info("Entering node: handle_error")
        logger.error(
            "Concept run error in %s (fatal): %s",
            state.get("last_node", "?"), state.get("error", "Unknown error"),
        )
        return {"error": state.get("error") or "Unknown error"}

    # -----------------------------------------------------------------------
    # Graph construction
    # -----------------------------------------------------------------------

    def build_graph(self):
        graph = StateGraph(ConceptWorkflowState)

        graph.add_node("initialize", self.initialize)
        graph.add_node("plan_concepts", self.plan_concepts)
        graph.add_node("write_pages", self.write_pages)
        graph.add_node("write_sources", self.write_sources)
        graph.add_node("handle_error", self.handle_error)

        graph.set_entry_point("initialize")

        graph.add_conditional_edges(
            "initialize",
            route_after_concept_init,
            {"plan_concepts": "plan_concepts", "handle_error": "handle_error"},
        )
        # plan_only stops after the plan file
        graph.add_conditional_edges(
            "plan_concepts",
            route_after_concept_plan,
            {"write_pages": "write_pages", "handle_error": "handle_error", "__end__": END},
        )
        graph.add_conditional_edges(
            "write_pages",
            route_after_pages,
            {"write_sources": "write_sources", "handle_error": "handle_error", "__end__": END},
        )
        graph.add_conditional_edges(
            "write_sources",
            route_after_sources,
            {"handle_error": "handle_error", "__end__": END},
        )

        graph.add_edge("handle_error", END)
        return graph.compile()

    async def run(self, initial_state: ConceptWorkflowState) -> dict:
        return await self.build_graph().ainvoke(initial_state)


async def run_concept_workflow(
    topic: TopicContext,
    force: bool = False,
    plan_only: bool = False,
    with_sources: bool = True,
    sources_count: Optional[int] = None,
    settings: Optional[Settings] = None,
    llm_client: Optional[AgentSDKClient] = None,
    db: Optional[Database] = None,
) -> dict:
    """Build and run the concept graph workflow for one topic.

    Args:
        topic: Topic title and curriculum context.
        force: Replan and rewrite pages even when they exist.
        plan_only: Stop after writing the plan file.
        with_sources: Add the source material page.
        sources_count: Items on the sources page, 5-12 (default from settings).
        settings: Injected settings (default ``get_settings()``).
        llm_client: Injected client (default ``AgentSDKClient(settings)``).
        db: Injected database (default ``settings.sqlite_db_path``).

    Returns:
        Final workflow state dict.
    """
    pipeline = ConceptPipeline(settings=settings, llm_client=llm_client, db=db)
    initial_state: ConceptWorkflowState = {
        "topic": topic,
        "force": force,
        "plan_only": plan_only,
        "with_sources": with_sources,
        "sources_count": pipeline.settings.sources_count if sources_count is None else sources_count,
    }

    logger.info("Starting concept workflow: topic=%r", topic.title)
    final_state = await pipeline.run(initial_state)
    logger.info("Concept workflow completed: %s", pipeline.llm.get_usage_summary())
    return final_state
