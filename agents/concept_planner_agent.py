"""Concept Planner: a topic broken into a layered graph of study concepts."""

import logging
from typing import Optional

from agents.base_agent import BaseAgent
from config.settings import Settings
from models.concept import ConceptPlan, TopicContext
from tools.agent_sdk_client import AgentSDKClient
from tools.concept_graph import compute_depth, compute_scale_spec, trim_to_scale, validate_concept_plan
from tools.llm_client import ensure_dict

logger = logging.getLogger(__name__)


class ConceptPlanner(BaseAgent):
    """Asks the generator for a concept graph sized to the topic.

    The reply is validated, layered by its prereq/extends edges and trimmed
    to the size limit. Unlike NarrativePlanner there is no fallback: a plan
    with dangling edges or a cycle raises PlanValidationError.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("concept_planner")

    async def plan(self, topic: TopicContext) -> ConceptPlan:
        scale = compute_scale_spec(topic.title, topic.description)
        logger.info(
            "Planning concepts for %r: target=%d (%d-%d), depth<=%d",
            topic.title, scale.target_nodes, scale.min_nodes, scale.max_nodes, scale.max_depth,
        )
        user_prompt = self._render_section(
            self._template, "Instructions",
            topic_line=topic.prompt_line(), language=self.language,
            min_nodes=scale.min_nodes, max_nodes=scale.max_nodes, target_nodes=scale.target_nodes,
            distribution=scale.distribution_line(), max_prereqs=scale.max_prereqs_per_node,
            max_depth=scale.max_depth,
        )
        data = await self.llm.generate_structured(
            user_prompt,
            system_prompt=self._system_prompt(self._template),
            model=self.settings.llm_model_planning,
        )
        plan = ConceptPlan.from_dict(ensure_dict(data, list_key="nodes"))
        validate_concept_plan(plan)
        plan = compute_depth(plan)

        if len(plan.nodes) > scale.max_nodes:
            logger.warning("Plan has %d concepts, trimming to %d", len(plan.nodes), scale.max_nodes)
            plan = trim_to_scale(plan, scale.max_nodes)
        elif len(plan.nodes) < scale.min_nodes:
            logger.warning("Plan has only %d concepts (expected at least %d)", len(plan.nodes), scale.min_nodes)

        logger.info("Concept plan ready: %d concepts, %d edges, %d layers",
                    len(plan.nodes), len(plan.edges), len(plan.layers()))
        return plan
