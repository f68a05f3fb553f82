"""Narrative Planner: narrative voice, style, tone and the typed chapter list."""

import logging
from dataclasses import replace
from typing import Optional

from agents.base_agent import BaseAgent
from config.exceptions import PlanValidationError
from config.settings import Settings
from models.enums import ChapterType, NarrativeVoice, PointOfView
from models.plan import ChapterPlan, NarrativePlan
from tools.agent_sdk_client import AgentSDKClient
from tools.llm_client import ensure_dict

logger = logging.getLogger(__name__)

FALLBACK_STYLE = "Classic literary realism"
FALLBACK_TONE = "balanced"
FALLBACK_SPIRITUAL_CORE = "A longing for order in a world full of contradictions."
FALLBACK_AXES = ["individual–society", "reason–feeling"]


def fallback_plan(chapter_count: int) -> NarrativePlan:
    """Deterministic plan of ``chapter_count`` third-person scenes."""
    return NarrativePlan(
        narrative_voice=NarrativeVoice.PURE_SCENES,
        narrative_voice_reasoning="Fallback: safe structure",
        style_inspiration=FALLBACK_STYLE,
        style_reasoning="Fallback: universal",
        overall_tone=FALLBACK_TONE,
        spiritual_core=FALLBACK_SPIRITUAL_CORE,
        interpretive_axes=list(FALLBACK_AXES),
        chapters=[
            ChapterPlan(
                index=i,
                title=f"Chapter {i}",
                description="Continuation of the story",
                type=ChapterType.SCENE,
                pov=PointOfView.THIRD_PERSON,
            )
            for i in range(1, chapter_count + 1)
        ],
    )


def enforce_opening_scene(plan: NarrativePlan) -> NarrativePlan:
    """Force chapter 1 to be a third-person scene."""
    if not plan.chapters:
        return plan
    first = plan.chapters[0]
    if first.type == ChapterType.SCENE and first.pov == PointOfView.THIRD_PERSON:
        return plan
    logger.warning(
        "Chapter 1 planned as %s/%s; correcting to scene/3rd_person",
        first.type.value, first.pov.value,
    )
    fixed = replace(first, type=ChapterType.SCENE, pov=PointOfView.THIRD_PERSON, pov_character=None)
    return replace(plan, chapters=[fixed, *plan.chapters[1:]])


class NarrativePlanner(BaseAgent):
    """Plans the narrative structure of the abridged retelling.

    Never fails: any generation or parsing problem yields ``fallback_plan``.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("narrative_planner")

    async def _request_plan(self, work_title: str, author: str, chapter_count: int) -> NarrativePlan:
        user_prompt = self._render_section(
            self._template, "Instructions",
            work_title=work_title, author=author,
            chapter_count=chapter_count, language=self.language,
        )
        data = await self.llm.generate_structured(
            user_prompt,
            system_prompt=self._system_prompt(self._template),
            model=self.settings.llm_model_planning,
        )
        plan = NarrativePlan.from_dict(ensure_dict(data, list_key="chapters"))
        if not plan.chapters:
            raise PlanValidationError("Narrative plan contains no chapters", {"work": work_title})
        return enforce_opening_scene(plan.reindexed())

    async def plan(self, work_title: str, author: str, target_chapter_count: int) -> NarrativePlan:
        """Return a narrative plan; falls back to pure scenes on any failure."""
        logger.info(
            "Planning narrative structure for %r (%s), %d chapters...",
            work_title, author, target_chapter_count,
        )
        try:
            plan = await self._request_plan(work_title, author, target_chapter_count)
        except Exception as e:
            logger.error("Narrative planning failed, using fallback plan (pure_scenes): %s", e)
            return fallback_plan(target_chapter_count)

        logger.info("Plan ready: voice=%s, style=%s", plan.narrative_voice.value, plan.style_inspiration)
        logger.info("Tone: %s | Core: %s", plan.overall_tone, plan.spiritual_core)
        logger.info("Chapters: %d, type mix: %s", len(plan.chapters), plan.type_histogram())
        return plan
