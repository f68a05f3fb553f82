"""Study Section Agent: exam-prep notes rendered as HTML study blocks."""

import logging
import re
from pathlib import Path
from typing import Optional

from agents.base_agent import BaseAgent
from config.settings import Settings
from models.chapter import ChapterSummary, StudyBlock
from models.enums import StudyBlockKind
from tools.agent_sdk_client import AgentSDKClient
from tools.handbook_files import HandbookPaths, wrap_study_section
from tools.study_section_template import LinkStrategy, render_study_section
from tools.text_utils import parse_markdown_sections, unwrap_code_fence

logger = logging.getLogger(__name__)

MIN_ITEMS = 5
MAX_ITEMS = 8

# Headings must start with the block's noun, optionally after qualifiers
# like "Key" or "Historical and cultural".
_QUALIFIERS = r"^(?:(?:key|main|central|major|exam|historical|cultural|literary|top|and)[\s-]+)*"


def _heading_pattern(nouns: str) -> re.Pattern:
    return re.compile(_QUALIFIERS + rf"(?:{nouns})", re.IGNORECASE)


# (kind, display title, heading pattern) in rendering order
CANONICAL_BLOCKS: list[tuple[StudyBlockKind, str, re.Pattern]] = [
    (StudyBlockKind.THESES, "Key theses", _heading_pattern(r"thes[ie]s")),
    (StudyBlockKind.MOTIFS, "Motifs and symbols", _heading_pattern(r"motif|symbol")),
    (StudyBlockKind.CHARACTERS, "Characters", _heading_pattern(r"character")),
    (StudyBlockKind.CONTEXTS, "Contexts", _heading_pattern(r"context")),
    (StudyBlockKind.QUESTIONS, "Exam questions", _heading_pattern(r"question")),
    (StudyBlockKind.TOP_SCENES, "Key scenes", _heading_pattern(r"scenes?")),
]


def match_block_kind(heading: str) -> Optional[StudyBlockKind]:
    for kind, _, pattern in CANONICAL_BLOCKS:
        if pattern.search(heading):
            return kind
    return None


def blocks_from_markdown(markdown: str) -> list[StudyBlock]:
    """Map ``## `` sections onto the six canonical blocks.

    Unrecognized sections are ignored; a missing section yields an empty block.
    When a heading repeats, the last occurrence wins.
    """
    found: dict[StudyBlockKind, list[str]] = {}
    for heading, items in parse_markdown_sections(markdown):
        kind = match_block_kind(heading)
        if kind is None:
            logger.debug("Ignoring unrecognized study section %r", heading)
            continue
        found[kind] = items

    blocks = []
    for kind, title, _ in CANONICAL_BLOCKS:
        items = found.get(kind, [])
        if not items:
            logger.warning("Study section %s is missing or empty", kind.value)
        elif not MIN_ITEMS <= len(items) <= MAX_ITEMS:
            logger.warning(
                "Study section %s has %d items (expected %d-%d)",
                kind.value, len(items), MIN_ITEMS, MAX_ITEMS,
            )
        blocks.append(StudyBlock(id=kind.value, title=title, items=items))
    return blocks


class StudySectionAgent(BaseAgent):
    """Generates the ``_STUDY_SECTION.md`` file of a handbook."""

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("study_section")

    def _chapter_digest(self, summaries: list[ChapterSummary]) -> str:
        parts = []
        for s in summaries:
            events = "\n".join(f"- {e}" for e in s.key_events) or "- (no summary)"
            parts.append(f"{self.chapter_label} {s.index}: {s.title}\n{events}")
        return "\n\n".join(parts)

    async def generate(
        self,
        work_title: str,
        author: str,
        summaries: list[ChapterSummary],
        strategy: Optional[LinkStrategy] = None,
    ) -> str:
        section_list = "\n".join(f"- {title}" for _, title, _ in CANONICAL_BLOCKS)
        user_prompt = self._render_section(
            self._template, "Instructions",
            work_title=work_title, author=author, language=self.language,
            section_list=section_list, label=self.chapter_label,
            chapter_digest=self._chapter_digest(summaries),
        )
        logger.info("Generating study section for %r from %d chapters", work_title, len(summaries))
        raw = await self.llm.generate_markdown(
            user_prompt,
            system_prompt=self._system_prompt(self._template),
            model=self.settings.llm_model_study,
        )
        blocks = blocks_from_markdown(unwrap_code_fence(raw))
        html = render_study_section(blocks, strategy, chapter_word=self.chapter_label)
        return wrap_study_section(html)

    async def write(
        self,
        paths: HandbookPaths,
        work_title: str,
        author: str,
        summaries: list[ChapterSummary],
        strategy: Optional[LinkStrategy] = None,
        force: bool = False,
    ) -> Path:
        path = paths.study_section_path
        if path.exists() and not force:
            logger.info("Skipping %s (already exists)", path.name)
            return path

        content = await self.generate(work_title, author, summaries, strategy)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.info("Saved %s", path.name)
        return path
