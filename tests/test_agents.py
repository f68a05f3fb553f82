"""Tests for the generation agents, with the LLM client mocked."""

import json

import pytest
from unittest.mock import AsyncMock


class TestMilestoneDiscoverer:
    @pytest.mark.asyncio
    async def test_discover_parses_and_caches(self, mock_llm, settings):
        from agents.milestone_agent import MilestoneDiscoverer
        mock_llm.generate_structured = AsyncMock(return_value={"milestones": [
            {"id": "ball", "title": "The Ball", "mustBeScene": True, "keywords": ["ball"]},
            {"title": "The Race"},
        ]})
        discoverer = MilestoneDiscoverer(mock_llm, settings)
        result = await discoverer.discover("Anna Karenina", "Leo Tolstoy")

        assert [m.id for m in result.milestones] == ["ball", "m-2"]
        cache = discoverer.cache_path("Anna Karenina", "Leo Tolstoy")
        assert cache.name == "anna-karenina-leo-tolstoy.json"
        assert json.loads(cache.read_text(encoding="utf-8"))["workTitle"] == "Anna Karenina"
        assert mock_llm.generate_structured.await_args.kwargs["model"] == settings.llm_model_planning

    @pytest.mark.asyncio
    async def test_cache_hit_skips_generation(self, mock_llm, settings):
        from agents.milestone_agent import MilestoneDiscoverer
        mock_llm.generate_structured = AsyncMock(return_value=[{"id": "a", "title": "A"}])
        discoverer = MilestoneDiscoverer(mock_llm, settings)
        await discoverer.discover("Lalka", "Prus")
        again = await discoverer.discover("Lalka", "Prus")
        assert [m.id for m in again.milestones] == ["a"]
        assert mock_llm.generate_structured.await_count == 1

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, mock_llm, settings):
        from agents.milestone_agent import MilestoneDiscoverer
        mock_llm.generate_structured = AsyncMock(return_value={"milestones": [{"id": "a", "title": "A"}]})
        discoverer = MilestoneDiscoverer(mock_llm, settings)
        await discoverer.discover("Lalka", "Prus")
        await discoverer.discover("Lalka", "Prus", force=True)
        assert mock_llm.generate_structured.await_count == 2

    @pytest.mark.asyncio
    async def test_unparseable_response_yields_empty(self, mock_llm, settings):
        from agents.milestone_agent import MilestoneDiscoverer
        from config.exceptions import LLMResponseParseError
        mock_llm.generate_structured = AsyncMock(side_effect=LLMResponseParseError("bad", "garbage"))
        result = await MilestoneDiscoverer(mock_llm, settings).discover("Lalka", "Prus")
        assert result.milestones == []

    @pytest.mark.asyncio
    async def test_empty_cache_is_not_reused(self, mock_llm, settings):
        from agents.milestone_agent import MilestoneDiscoverer
        mock_llm.generate_structured = AsyncMock(return_value={"milestones": []})
        discoverer = MilestoneDiscoverer(mock_llm, settings)
        await discoverer.discover("Lalka", "Prus")
        await discoverer.discover("Lalka", "Prus")
        assert mock_llm.generate_structured.await_count == 2

    @pytest.mark.asyncio
    async def test_other_failures_propagate(self, mock_llm, settings):
        from agents.milestone_agent import MilestoneDiscoverer
        from config.exceptions import LLMTimeoutError
        mock_llm.generate_structured = AsyncMock(side_effect=LLMTimeoutError("slow"))
        with pytest.raises(LLMTimeoutError):
            await MilestoneDiscoverer(mock_llm, settings).discover("Lalka", "Prus")


class TestNarrativePlanner:
    @pytest.mark.asyncio
    async def test_plan_from_response(self, mock_llm, settings):
        from agents.planner_agent import NarrativePlanner
        from models.enums import ChapterType, NarrativeVoice
        mock_llm.generate_structured = AsyncMock(return_value={
            "narrativeVoice": "diary_and_scenes",
            "styleInspiration": "Prus with warmth",
            "overallTone": "melancholic",
            "chapters": [
                {"index": 5, "title": "Arrival", "type": "scene", "pov": "3rd_person"},
                {"index": 9, "title": "Diary", "type": "diary", "pov": "1st_person_observer"},
            ],
        })
        plan = await NarrativePlanner(mock_llm, settings).plan("Lalka", "Prus", 2)
        assert plan.narrative_voice == NarrativeVoice.DIARY_AND_SCENES
        assert [ch.index for ch in plan.chapters] == [1, 2]
        assert plan.chapters[1].type == ChapterType.DIARY

    @pytest.mark.asyncio
    async def test_first_chapter_forced_to_scene(self, mock_llm, settings):
        from agents.planner_agent import NarrativePlanner
        from models.enums import ChapterType, PointOfView
        mock_llm.generate_structured = AsyncMock(return_value={"chapters": [
            {"title": "Letter", "type": "letter", "pov": "1st_person_protagonist", "povCharacter": "Izabela"},
        ]})
        plan = await NarrativePlanner(mock_llm, settings).plan("Lalka", "Prus", 1)
        first = plan.chapters[0]
        assert first.type == ChapterType.SCENE
        assert first.pov == PointOfView.THIRD_PERSON
        assert first.pov_character is None
        assert first.title == "Letter"

    @pytest.mark.asyncio
    async def test_failure_returns_fallback(self, mock_llm, settings):
        from agents.planner_agent import FALLBACK_STYLE, NarrativePlanner, fallback_plan
        mock_llm.generate_structured = AsyncMock(side_effect=RuntimeError("boom"))
        plan = await NarrativePlanner(mock_llm, settings).plan("Lalka", "Prus", 9)
        assert plan.to_dict() == fallback_plan(9).to_dict()
        assert plan.style_inspiration == FALLBACK_STYLE
        assert len(plan.chapters) == 9

    @pytest.mark.asyncio
    async def test_no_chapters_returns_fallback(self, mock_llm, settings):
        from agents.planner_agent import NarrativePlanner
        from models.enums import NarrativeVoice
        mock_llm.generate_structured = AsyncMock(return_value={"narrativeVoice": "experimental", "chapters": []})
        plan = await NarrativePlanner(mock_llm, settings).plan("Lalka", "Prus", 8)
        assert plan.narrative_voice == NarrativeVoice.PURE_SCENES
        assert len(plan.chapters) == 8

    def test_fallback_plan_is_deterministic(self):
        from agents.planner_agent import fallback_plan
        assert fallback_plan(10).to_dict() == fallback_plan(10).to_dict()
        assert all(ch["type"] == "scene" for ch in fallback_plan(10).to_dict()["chapters"])


class TestChapterGenerator:
    def test_word_target_clamped(self, mock_llm, settings):
        from agents.writer_agent import ChapterGenerator
        gen = ChapterGenerator(mock_llm, settings)
        assert gen.word_target(5.0) == 825
        assert gen.word_target(1.0) == settings.chapter_min_words
        assert gen.word_target(20.0) == settings.chapter_max_words

    def test_build_prompt_scene(self, mock_llm, settings, sample_plan):
        from agents.writer_agent import ChapterGenerator
        gen = ChapterGenerator(mock_llm, settings)
        system, user = gen.build_prompt(
            sample_plan.chapter(1), sample_plan, [], "Night Notes {#ch-02}", 5.0, "Anna Karenina", "Tolstoy",
        )
        assert system
        assert "## Chapter 1: The Arrival" in user
        assert "*[Place: the station; time: dawn; who: Anna]*" in user
        assert "*Transition:* Night Notes" in user
        assert "{#ch-02}" not in user
        assert "GENRE TEMPLATE" in user

    def test_build_prompt_includes_prior_chapters(self, mock_llm, settings, sample_plan):
        from agents.writer_agent import ChapterGenerator
        from models.chapter import ChapterSummary
        gen = ChapterGenerator(mock_llm, settings)
        summaries = [ChapterSummary(1, "The Arrival", ["Anna steps off the train at dawn"])]
        _, user = gen.build_prompt(sample_plan.chapter(2), sample_plan, summaries, None, 5.0, "Anna Karenina", "Tolstoy")
        assert "Chapter 1: The Arrival" in user
        assert "- Anna steps off the train at dawn" in user
        assert "GENRE TEMPLATE" not in user
        assert "diary" in user

    @pytest.mark.asyncio
    async def test_write_chapter_generates_and_saves(self, mock_llm, settings, sample_plan, tmp_path):
        from agents.writer_agent import ChapterGenerator
        from tools.handbook_files import HandbookPaths
        paths = HandbookPaths(tmp_path / "handbook-anna-karenina-x.md")
        gen = ChapterGenerator(mock_llm, settings)

        result = await gen.write_chapter(
            paths, sample_plan.chapter(2), sample_plan, [], "A Letter Home", 5.0, "Anna Karenina", "Tolstoy",
        )
        assert result.generated is True
        assert result.path.name == "ch-02-night-notes.md"
        assert result.path.read_text(encoding="utf-8") == "## Chapter 2: Night Notes\n\nSome generated text.\n"
        assert mock_llm.generate_markdown.await_count == 1
        assert mock_llm.generate_markdown.await_args.kwargs["model"] == settings.llm_model_writing

    @pytest.mark.asyncio
    async def test_existing_chapter_is_reused(self, mock_llm, settings, sample_plan, tmp_path):
        from agents.writer_agent import ChapterGenerator
        from tools.handbook_files import HandbookPaths
        paths = HandbookPaths(tmp_path / "handbook-anna-karenina-x.md")
        existing = paths.chapter_path(2, "Night Notes")
        existing.parent.mkdir(parents=True)
        existing.write_text(
            "## Chapter 2: Night Notes\n\nAnna could not sleep after the ball at all.\n", encoding="utf-8",
        )
        gen = ChapterGenerator(mock_llm, settings)

        result = await gen.write_chapter(
            paths, sample_plan.chapter(2), sample_plan, [], None, 5.0, "Anna Karenina", "Tolstoy",
        )
        assert result.generated is False
        assert result.summary.key_events == ["Anna could not sleep after the ball at all"]
        mock_llm.generate_markdown.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_force_regenerates(self, mock_llm, settings, sample_plan, tmp_path):
        from agents.writer_agent import ChapterGenerator
        from tools.handbook_files import HandbookPaths
        paths = HandbookPaths(tmp_path / "handbook-anna-karenina-x.md")
        existing = paths.chapter_path(2, "Night Notes")
        existing.parent.mkdir(parents=True)
        existing.write_text("old", encoding="utf-8")
        gen = ChapterGenerator(mock_llm, settings)

        result = await gen.write_chapter(
            paths, sample_plan.chapter(2), sample_plan, [], None, 5.0, "Anna Karenina", "Tolstoy", force=True,
        )
        assert result.generated is True
        assert "Some generated text." in existing.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_scene_chapter_uses_cached_style_example(self, mock_llm, settings, sample_plan, tmp_path):
        from agents.writer_agent import ChapterGenerator
        from tools.handbook_files import HandbookPaths
        paths = HandbookPaths(tmp_path / "handbook-anna-karenina-x.md")
        gen = ChapterGenerator(mock_llm, settings)

        await gen.write_chapter(paths, sample_plan.chapter(1), sample_plan, [], None, 5.0, "Anna Karenina", "Tolstoy")
        assert mock_llm.generate_markdown.await_count == 2
        assert paths.custom_example_path.exists()

        paths.chapter_path(1, "The Arrival").unlink()
        await gen.write_chapter(paths, sample_plan.chapter(1), sample_plan, [], None, 5.0, "Anna Karenina", "Tolstoy")
        assert mock_llm.generate_markdown.await_count == 3


class TestStyleExampleAgent:
    @pytest.mark.asyncio
    async def test_stale_cache_regenerates(self, mock_llm, settings, tmp_path):
        from agents.style_example_agent import StyleExampleAgent
        agent = StyleExampleAgent(mock_llm, settings)
        cache = tmp_path / "h.custom-example.json"

        first = await agent.load_or_generate(cache, "Lalka", "Prus", "realism", "Prus")
        assert first == "Some generated text."
        await agent.load_or_generate(cache, "Lalka", "Prus", "realism", "Prus")
        assert mock_llm.generate_markdown.await_count == 1

        await agent.load_or_generate(cache, "Lalka", "Prus", "psychological", "Prus")
        assert mock_llm.generate_markdown.await_count == 2
        assert json.loads(cache.read_text(encoding="utf-8"))["genre"] == "psychological"


class TestHandbookWriter:
    @pytest.mark.asyncio
    async def test_write_handbook(self, mock_llm, settings, sample_plan, tmp_path):
        from agents.toc_agent import HandbookWriter
        from tools.handbook_files import parse_intro, parse_toc, parse_work_title, read_plan
        mock_llm.generate_markdown = AsyncMock(
            return_value="# Intro\n\nA story of love and duty.\n\n- stray bullet\n\nSecond paragraph."
        )
        paths = await HandbookWriter(mock_llm, settings).write_handbook(
            tmp_path, "Anna Karenina", "Tolstoy", sample_plan, timestamp="2025-01-31T09-15-02-123Z",
        )
        md = paths.markdown_path.read_text(encoding="utf-8")
        assert paths.markdown_path.name == "handbook-anna-karenina-2025-01-31T09-15-02-123Z.md"
        assert parse_work_title(md) == "Anna Karenina"
        assert parse_intro(md) == "A story of love and duty.\n\nSecond paragraph."
        assert len(parse_toc(md)) == 3
        assert read_plan(paths.plan_path).to_dict() == sample_plan.to_dict()
        assert paths.chapters_dir.is_dir()
        assert mock_llm.generate_markdown.await_args.kwargs["model"] == settings.llm_model_study


STUDY_MARKDOWN = """```markdown
## Key theses
- early draft, replaced below

## Something else
- ignored

## Exam questions
- Why does Anna leave? (Chapter 3)

## Key theses
- Ambition corrupts (Chapter 1)
- Love against duty (Chapter 2–3)
```"""


class TestStudySectionAgent:
    def test_blocks_from_markdown(self):
        from agents.study_section_agent import blocks_from_markdown
        from tools.text_utils import unwrap_code_fence
        blocks = blocks_from_markdown(unwrap_code_fence(STUDY_MARKDOWN))
        assert [b.id for b in blocks] == [
            "study-theses", "study-motifs", "study-characters",
            "study-contexts", "study-questions", "study-topscenes",
        ]
        assert blocks[0].items == ["Ambition corrupts (Chapter 1)", "Love against duty (Chapter 2–3)"]
        assert blocks[1].items == []
        assert blocks[4].items == ["Why does Anna leave? (Chapter 3)"]

    @pytest.mark.parametrize("heading,kind", [
        ("Key theses", "study-theses"),
        ("Motifs & symbols", "study-motifs"),
        ("Main characters", "study-characters"),
        ("Historical contexts", "study-contexts"),
        ("Exam questions", "study-questions"),
        ("Top scenes", "study-topscenes"),
        ("Historical and cultural context", "study-contexts"),
        ("Questions about characters", "study-questions"),
        ("Scenes with key characters", "study-topscenes"),
        ("Epilogue", None),
    ])
    def test_match_block_kind(self, heading, kind):
        from agents.study_section_agent import match_block_kind
        result = match_block_kind(heading)
        assert (result.value if result else None) == kind

    @pytest.mark.asyncio
    async def test_write_renders_html(self, mock_llm, settings, tmp_path):
        from agents.study_section_agent import StudySectionAgent
        from models.chapter import ChapterSummary
        from tools.handbook_files import HandbookPaths
        mock_llm.generate_markdown = AsyncMock(return_value=STUDY_MARKDOWN)
        paths = HandbookPaths(tmp_path / "handbook-x.md")
        agent = StudySectionAgent(mock_llm, settings)

        path = await agent.write(paths, "Anna Karenina", "Tolstoy", [ChapterSummary(1, "The Arrival")])
        content = path.read_text(encoding="utf-8")
        assert path == paths.study_section_path
        assert content.startswith("<!-- study-blocks:start -->\n<study-section>")
        assert content.endswith("</study-section>\n<!-- study-blocks:end -->\n")
        assert '(Chapter <a href="#ch-02">2</a>–<a href="#ch-03">3</a>)' in content
        assert content.count("<study-block ") == 6
        prompt = mock_llm.generate_markdown.await_args.args[0]
        assert "Chapter 1: The Arrival\n- (no summary)" in prompt

    @pytest.mark.asyncio
    async def test_existing_file_skipped_unless_forced(self, mock_llm, settings, tmp_path):
        from agents.study_section_agent import StudySectionAgent
        from tools.handbook_files import HandbookPaths
        paths = HandbookPaths(tmp_path / "handbook-x.md")
        paths.chapters_dir.mkdir()
        paths.study_section_path.write_text("kept", encoding="utf-8")
        agent = StudySectionAgent(mock_llm, settings)

        await agent.write(paths, "W", "A", [])
        assert paths.study_section_path.read_text(encoding="utf-8") == "kept"
        mock_llm.generate_markdown.assert_not_awaited()

        await agent.write(paths, "W", "A", [], force=True)
        assert paths.study_section_path.read_text(encoding="utf-8") != "kept"


class TestPromptSections:
    def test_split_sections(self):
        from agents.base_agent import split_sections
        template = "# Title\n\nignored\n\n## System Prompt\nBe brief.\n\n## Instructions\nWrite {n} words.\n"
        assert split_sections(template) == {"System Prompt": "Be brief.", "Instructions": "Write {n} words."}

    def test_render_and_missing_section(self, mock_llm, settings):
        from agents.base_agent import BaseAgent
        agent = BaseAgent(mock_llm, settings)
        template = "## Instructions\nWrite {n} words.\n## Type: scene\nScene rules"
        assert agent._render_section(template, "Instructions", n=3) == "Write 3 words."
        assert agent._extract_section(template, "scene") == "Scene rules"
        assert agent._extract_section(template, "Epilogue") == ""

    def test_every_prompt_has_system_and_instructions(self):
        from agents.base_agent import PROMPTS_DIR, read_prompt, split_sections
        for path in PROMPTS_DIR.glob("*.md"):
            sections = split_sections(read_prompt(path.stem))
            assert sections.get("System Prompt"), path.name
            assert sections.get("Instructions"), path.name


def concept_reply(count, edges=()):
    return {
        "nodes": [{"id": f"k{i}", "title": f"Angle number {i}", "kind": "core"} for i in range(1, count + 1)],
        "edges": [{"from": s, "to": t, "type": kind} for s, t, kind in edges],
    }


class TestConceptPlanner:
    @pytest.mark.asyncio
    async def test_plan_layers_reply(self, mock_llm, settings):
        from agents.concept_planner_agent import ConceptPlanner
        from models.concept import TopicContext
        mock_llm.generate_structured = AsyncMock(return_value=concept_reply(
            6, [("k1", "k2", "prereq"), ("k2", "k3", "extends"), ("k4", "k5", "example")],
        ))
        plan = await ConceptPlanner(mock_llm, settings).plan(TopicContext("Battle of Grunwald"))

        assert [n.depth for n in plan.nodes] == [0, 1, 2, 0, 0, 0]
        prompt = mock_llm.generate_structured.await_args.args[0]
        assert "at least 6, at most 8, aim for 6" in prompt
        assert "Topic=Battle of Grunwald" in prompt
        assert mock_llm.generate_structured.await_args.kwargs["model"] == settings.llm_model_planning

    @pytest.mark.asyncio
    async def test_oversized_plan_trimmed(self, mock_llm, settings):
        from agents.concept_planner_agent import ConceptPlanner
        from models.concept import TopicContext
        mock_llm.generate_structured = AsyncMock(return_value=concept_reply(12))
        plan = await ConceptPlanner(mock_llm, settings).plan(TopicContext("Battle of Grunwald"))
        assert [n.id for n in plan.nodes] == [f"k{i}" for i in range(1, 9)]

    @pytest.mark.asyncio
    async def test_bare_node_list_accepted(self, mock_llm, settings):
        from agents.concept_planner_agent import ConceptPlanner
        from models.concept import TopicContext
        mock_llm.generate_structured = AsyncMock(return_value=concept_reply(6)["nodes"])
        plan = await ConceptPlanner(mock_llm, settings).plan(TopicContext("Battle of Grunwald"))
        assert len(plan.nodes) == 6
        assert plan.edges == []

    @pytest.mark.asyncio
    async def test_cycle_raises(self, mock_llm, settings):
        from agents.concept_planner_agent import ConceptPlanner
        from config.exceptions import PlanValidationError
        from models.concept import TopicContext
        mock_llm.generate_structured = AsyncMock(return_value=concept_reply(
            6, [("k1", "k2", "prereq"), ("k2", "k1", "prereq")],
        ))
        with pytest.raises(PlanValidationError, match="Cycle"):
            await ConceptPlanner(mock_llm, settings).plan(TopicContext("Battle of Grunwald"))


class TestConceptPageWriter:
    @pytest.mark.asyncio
    async def test_expand_formats_reply(self, mock_llm, settings):
        from agents.concept_page_agent import ConceptPageWriter
        from models.concept import TopicContext
        from tools.concept_page import pick_variant
        mock_llm.generate_markdown = AsyncMock(return_value="Some body text without any structure.")
        page = await ConceptPageWriter(mock_llm, settings).expand("Irony", TopicContext("Romanticism"))

        assert page.startswith("# Irony\n")
        assert "### Content\n# Irony\n" in page
        prompt = mock_llm.generate_markdown.await_args.args[0]
        assert f"Style: {pick_variant('Irony').style_hint}" in prompt
        assert 'H1Title="Irony"' in prompt
        assert mock_llm.generate_markdown.await_args.kwargs["model"] == settings.llm_model_writing

    @pytest.mark.asyncio
    async def test_generation_failure_gives_skeleton(self, mock_llm, settings):
        from agents.concept_page_agent import ConceptPageWriter
        from config.exceptions import LLMTimeoutError
        from models.concept import TopicContext
        mock_llm.generate_markdown = AsyncMock(side_effect=LLMTimeoutError("slow"))
        page = await ConceptPageWriter(mock_llm, settings).expand("Irony", TopicContext("Romanticism"))
        assert "A first short paragraph" in page
        assert "> **Related:** Romanticism" in page

    def test_variant_values(self):
        from agents.concept_page_agent import variant_prompt_values
        from tools.concept_page import StyleVariant
        values = variant_prompt_values(StyleVariant("x", "Calm.", lead_at_end=True, pull_quote=True))
        assert values["variant_hints"].startswith("Style: Calm.")
        assert "pull quote" in values["variant_extras"]
        assert values["variant_closing"].startswith("> <closing lead")


class TestSourcesAgent:
    @pytest.mark.asyncio
    async def test_extra_items_pruned_and_title_added(self, mock_llm, settings):
        from agents.sources_agent import SourcesAgent
        from models.concept import TopicContext
        from tools.concept_page import count_source_items
        items = "\n".join(f"- [Item {i}](https://example.org/{i}) — *Library*." for i in range(1, 8))
        mock_llm.generate_markdown = AsyncMock(return_value=items)
        page = await SourcesAgent(mock_llm, settings).fetch(TopicContext("Romanticism"), ["Irony", "Nature"], 5)

        assert page.startswith("# Sources for: Romanticism\n")
        assert count_source_items(page) == 5
        prompt = mock_llm.generate_markdown.await_args.args[0]
        assert "Concepts=Irony | Nature" in prompt
        assert "EXACTLY 5 items" in prompt

    @pytest.mark.asyncio
    async def test_confirmation_request_retried(self, mock_llm, settings):
        from agents.sources_agent import SourcesAgent
        from models.concept import TopicContext
        mock_llm.generate_markdown = AsyncMock(side_effect=[
            "Should I use English sources only? Please confirm.",
            "# Sources for: Romanticism\n\n- [A](https://example.org/a) — *Archive*.",
        ])
        page = await SourcesAgent(mock_llm, settings).fetch(TopicContext("Romanticism"), [])
        assert mock_llm.generate_markdown.await_count == 2
        assert mock_llm.generate_markdown.await_args.args[0].startswith("NO QUESTIONS")
        assert page.startswith("# Sources for: Romanticism")

    @pytest.mark.asyncio
    async def test_ordinary_should_is_not_a_question(self, mock_llm, settings):
        from agents.sources_agent import SourcesAgent
        from models.concept import TopicContext
        mock_llm.generate_markdown = AsyncMock(
            return_value="- [A](https://example.org/a)\n  **Why it matters:** students should include it.",
        )
        await SourcesAgent(mock_llm, settings).fetch(TopicContext("Romanticism"), [])
        assert mock_llm.generate_markdown.await_count == 1

    @pytest.mark.parametrize("count,expected", [(None, 8), (3, 5), (20, 12), (7, 7)])
    def test_count_clamped(self, count, expected):
        from agents.sources_agent import clamp_source_count
        assert clamp_source_count(count) == expected
