"""Handbook Writer: intro paragraph, table of contents and plan file."""

import logging
from pathlib import Path
from typing import Optional

from agents.base_agent import BaseAgent
from config.settings import Settings
from models.plan import NarrativePlan
from tools.agent_sdk_client import AgentSDKClient
from tools.handbook_files import HandbookPaths, render_handbook_markdown, write_plan
from tools.markdown_doc import BlockKind, MarkdownDocument
from tools.text_utils import unwrap_code_fence

logger = logging.getLogger(__name__)


class HandbookWriter(BaseAgent):
    """Creates ``handbook-{slug}-{timestamp}.md`` and its ``.plan.json``.

    Only the intro paragraph comes from the generator; the table of contents
    is rendered from the merged plan so it always matches the chapter files.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("handbook_intro")

    async def write_intro(self, work_title: str, author: str, plan: NarrativePlan) -> str:
        user_prompt = self._render_section(
            self._template, "Instructions",
            work_title=work_title, author=author, language=self.language,
            voice=plan.narrative_voice.value, style=plan.style_inspiration,
            tone=plan.overall_tone, spiritual_core=plan.spiritual_core,
        )
        raw = await self.llm.generate_markdown(
            user_prompt,
            system_prompt=self._system_prompt(self._template),
            model=self.settings.llm_model_study,
        )
        # Keep prose only; models sometimes add their own headings or lists
        doc = MarkdownDocument.parse(unwrap_code_fence(raw))
        paragraphs = [b.text for b in doc.blocks if b.kind == BlockKind.PARAGRAPH]
        return "\n\n".join(paragraphs)

    async def write_handbook(
        self,
        out_dir: str | Path,
        work_title: str,
        author: str,
        plan: NarrativePlan,
        timestamp: Optional[str] = None,
    ) -> HandbookPaths:
        """Write the handbook markdown and plan file. Returns the artifact paths."""
        paths = HandbookPaths.create(out_dir, work_title, timestamp)
        intro = await self.write_intro(work_title, author, plan)

        paths.markdown_path.parent.mkdir(parents=True, exist_ok=True)
        paths.markdown_path.write_text(render_handbook_markdown(work_title, intro, plan), encoding="utf-8")
        write_plan(paths.plan_path, plan)
        paths.chapters_dir.mkdir(parents=True, exist_ok=True)

        logger.info("Handbook file: %s", paths.markdown_path)
        logger.info("Narrative plan: %s", paths.plan_path)
        return paths
