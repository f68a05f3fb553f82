"""Chapter Generator: writes one chapter with continuity context and type-specific rules."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from agents.base_agent import BaseAgent
from agents.style_example_agent import StyleExampleAgent
from config.settings import Settings
from models.chapter import ChapterSummary
from models.enums import ChapterType
from models.plan import ChapterPlan, NarrativePlan
from tools.agent_sdk_client import AgentSDKClient
from tools.genre_examples import detect_genre, format_genre_example, get_genre_example
from tools.handbook_files import HandbookPaths
from tools.markdown_doc import normalize_chapter_markdown
from tools.text_utils import extract_key_events, sanitize_chapter_title, unwrap_code_fence

logger = logging.getLogger(__name__)

_TYPE_SECTIONS = {
    ChapterType.SCENE: "Type: scene",
    ChapterType.DIARY: "Type: diary",
    ChapterType.LETTER: "Type: letter",
    ChapterType.MONOLOGUE: "Type: monologue",
    ChapterType.NEWSPAPER: "Type: newspaper",
    ChapterType.FOUND_DOCUMENT: "Type: found_document",
}


@dataclass
class ChapterResult:
    """Outcome of write_chapter: file location, final text and continuity summary."""
    index: int
    path: Path
    markdown: str
    summary: ChapterSummary
    generated: bool


class ChapterGenerator(BaseAgent):
    """Generates chapter Markdown and persists it as ``ch-NN-slug.md``.

    Chapters are idempotent on disk: an existing file is reused (without a
    generation call) unless ``force`` is set.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
        style_examples: Optional[StyleExampleAgent] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("chapter_writer")
        self.style_examples = style_examples or StyleExampleAgent(self.llm, self.settings)

    def word_target(self, target_minutes: float) -> int:
        words = round(target_minutes * self.settings.words_per_minute)
        return max(self.settings.chapter_min_words, min(self.settings.chapter_max_words, words))

    def chapter_heading(self, chapter_plan: ChapterPlan) -> str:
        return f"{self.chapter_label} {chapter_plan.index}: {sanitize_chapter_title(chapter_plan.title)}"

    def _context_block(self, prior_summaries: list[ChapterSummary]) -> str:
        if not prior_summaries:
            return ""
        previous = "\n\n".join(
            f"{self.chapter_label} {s.index}: {s.title}\n" + "\n".join(f"- {e}" for e in s.key_events)
            for s in prior_summaries
        )
        return "\n" + self._render_section(
            self._template, "Context",
            previous_chapters=previous,
            label=self.chapter_label,
            last_index=prior_summaries[-1].index,
        ) + "\n"

    def _type_rules(self, chapter_plan: ChapterPlan, genre_block: str, custom_example: str) -> str:
        section = _TYPE_SECTIONS.get(chapter_plan.type, _TYPE_SECTIONS[ChapterType.SCENE])
        return self._render_section(
            self._template, section,
            pov_character=chapter_plan.pov_character or "the narrator",
            genre_block=genre_block,
            custom_example=custom_example or "(none available; follow the genre template)",
        )

    def build_prompt(
        self,
        chapter_plan: ChapterPlan,
        narrative_plan: NarrativePlan,
        prior_summaries: list[ChapterSummary],
        next_chapter_title: Optional[str],
        target_minutes: float,
        work_title: str,
        author: str,
        custom_example: str = "",
    ) -> tuple[str, str]:
        """Return (system_prompt, user_prompt) for one chapter."""
        is_scene = chapter_plan.type == ChapterType.SCENE
        genre_block = ""
        if is_scene:
            genre = detect_genre(narrative_plan.style_inspiration, narrative_plan.overall_tone)
            genre_block = format_genre_example(get_genre_example(genre))

        if is_scene:
            orientation = "; ".join(p.strip() for p in chapter_plan.description.split(";")[:3])
            orientation_hint = f"*[{orientation}]*"
            final_reminder = self._extract_section(self._template, "Scene Reminder")
        else:
            orientation_hint = ""
            final_reminder = f"Write according to the chapter type: {chapter_plan.type.value}"

        if next_chapter_title:
            closing_hint = f"*Transition:* {sanitize_chapter_title(next_chapter_title)}"
        else:
            closing_hint = "(Close the chapter without announcing what comes next)"

        user_prompt = self._render_section(
            self._template, "Instructions",
            work_title=work_title,
            author=author,
            language=self.language,
            label_upper=self.chapter_label.upper(),
            index=chapter_plan.index,
            title=chapter_plan.title,
            description=chapter_plan.description,
            voice=narrative_plan.narrative_voice.value,
            style=narrative_plan.style_inspiration,
            overall_tone=narrative_plan.overall_tone,
            chapter_tone=chapter_plan.tone or narrative_plan.overall_tone,
            spiritual_core=narrative_plan.spiritual_core,
            axes=", ".join(narrative_plan.interpretive_axes) or "-",
            pov=chapter_plan.pov.value + (f" ({chapter_plan.pov_character})" if chapter_plan.pov_character else ""),
            context_block=self._context_block(prior_summaries),
            type_rules=self._type_rules(chapter_plan, genre_block, custom_example),
            minutes=target_minutes,
            words=self.word_target(target_minutes),
            min_words=self.settings.chapter_min_words,
            max_words=self.settings.chapter_max_words,
            heading_line=f"## {self.chapter_heading(chapter_plan)}",
            orientation_hint=orientation_hint,
            closing_hint=closing_hint,
            final_reminder=final_reminder,
        )
        return self._system_prompt(self._template), user_prompt

    def normalize(self, chapter_plan: ChapterPlan, markdown: str) -> str:
        return normalize_chapter_markdown(
            unwrap_code_fence(markdown),
            chapter_heading=self.chapter_heading(chapter_plan),
            chapter_label=self.chapter_label,
        )

    def summarize(self, chapter_plan: ChapterPlan, markdown: str) -> ChapterSummary:
        events = extract_key_events(markdown)
        return ChapterSummary(
            index=chapter_plan.index,
            title=sanitize_chapter_title(chapter_plan.title),
            key_events=events,
            key_quotes=events[:2],
        )

    async def generate_chapter(
        self,
        chapter_plan: ChapterPlan,
        narrative_plan: NarrativePlan,
        prior_summaries: list[ChapterSummary],
        next_chapter_title: Optional[str],
        target_minutes: float,
        work_title: str = "",
        author: str = "",
        custom_example_path: Optional[Path] = None,
    ) -> str:
        """Generate and normalize one chapter. Generation failures propagate."""
        custom_example = ""
        if chapter_plan.type == ChapterType.SCENE and custom_example_path is not None:
            genre = detect_genre(narrative_plan.style_inspiration, narrative_plan.overall_tone)
            custom_example = await self.style_examples.load_or_generate(
                custom_example_path, work_title, author, genre, narrative_plan.style_inspiration,
            )

        system_prompt, user_prompt = self.build_prompt(
            chapter_plan, narrative_plan, prior_summaries, next_chapter_title,
            target_minutes, work_title, author, custom_example,
        )
        logger.info(
            "Writing %s %d: %r (type=%s, pov=%s, ~%d words)",
            self.chapter_label, chapter_plan.index, chapter_plan.title,
            chapter_plan.type.value, chapter_plan.pov.value, self.word_target(target_minutes),
        )
        raw = await self.llm.generate_markdown(
            user_prompt,
            system_prompt=system_prompt,
            model=self.settings.llm_model_writing,
        )
        return self.normalize(chapter_plan, raw)

    async def write_chapter(
        self,
        paths: HandbookPaths,
        chapter_plan: ChapterPlan,
        narrative_plan: NarrativePlan,
        prior_summaries: list[ChapterSummary],
        next_chapter_title: Optional[str],
        target_minutes: float,
        work_title: str,
        author: str,
        force: bool = False,
    ) -> ChapterResult:
        """Generate the chapter file unless it already exists."""
        path = paths.chapter_path(chapter_plan.index, chapter_plan.title)

        if path.exists() and not force:
            markdown = self.normalize(chapter_plan, path.read_text(encoding="utf-8"))
            logger.info("Skipping %s (already exists)", path.name)
            return ChapterResult(
                chapter_plan.index, path, markdown, self.summarize(chapter_plan, markdown), generated=False,
            )

        markdown = await self.generate_chapter(
            chapter_plan, narrative_plan, prior_summaries, next_chapter_title,
            target_minutes, work_title, author, custom_example_path=paths.custom_example_path,
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(markdown, encoding="utf-8")
        logger.info("Saved %s", path.name)
        return ChapterResult(
            chapter_plan.index, path, markdown, self.summarize(chapter_plan, markdown), generated=True,
        )
