"""Tests for handbook file layout and table-of-contents parsing."""

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest


class TestHandbookPaths:
    def test_create_uses_slug_and_timestamp(self, tmp_path):
        from tools.handbook_files import HandbookPaths
        paths = HandbookPaths.create(tmp_path, "Pan Tadeusz", timestamp="2025-01-31T09-15-02-123Z")
        assert paths.markdown_path.name == "handbook-pan-tadeusz-2025-01-31T09-15-02-123Z.md"
        assert paths.plan_path.name == "handbook-pan-tadeusz-2025-01-31T09-15-02-123Z.plan.json"
        assert paths.chapters_dir.name == "handbook-pan-tadeusz-2025-01-31T09-15-02-123Z.chapters"
        assert paths.study_section_path == paths.chapters_dir / "_STUDY_SECTION.md"

    def test_chapter_path(self, tmp_path):
        from tools.handbook_files import HandbookPaths
        paths = HandbookPaths(tmp_path / "handbook-x.md")
        assert paths.chapter_path(3, "The Ball!").name == "ch-03-the-ball.md"
        assert paths.chapter_path(4, "???").name == "ch-04-chapter.md"

    def test_make_timestamp(self):
        from tools.handbook_files import make_timestamp
        now = datetime(2025, 1, 31, 9, 15, 2, 123456, tzinfo=timezone.utc)
        assert make_timestamp(now) == "2025-01-31T09-15-02-123Z"


class TestHandbookMarkdown:
    def test_render_and_parse_toc(self, sample_plan):
        from tools.handbook_files import parse_toc, render_handbook_markdown
        md = render_handbook_markdown("Anna Karenina", "An intro.", sample_plan)
        assert md.startswith("# Anna Karenina — abridged\n")
        assert "- 2. **Night Notes** [diary] — Anna writes about the ball" in md
        assert parse_toc(md) == [(ch.title, ch.description) for ch in sample_plan.chapters]

    def test_parse_work_title_and_intro(self, sample_plan):
        from tools.handbook_files import parse_intro, parse_work_title, render_handbook_markdown
        md = render_handbook_markdown("Anna Karenina", "First paragraph.\n\nSecond paragraph.", sample_plan)
        assert parse_work_title(md) == "Anna Karenina"
        assert parse_intro(md) == "First paragraph.\n\nSecond paragraph."

    def test_missing_intro(self, sample_plan):
        from tools.handbook_files import parse_intro, render_handbook_markdown
        assert parse_intro(render_handbook_markdown("Lalka", "", sample_plan)) == ""

    def test_parse_work_title_absent(self):
        from tools.handbook_files import parse_work_title
        assert parse_work_title("# Just a heading\n") is None

    def test_parse_toc_plain_lines_and_stop(self):
        from tools.handbook_files import parse_toc
        md = (
            "# Lalka — abridged\n\n"
            "## Table of contents\n\n"
            "1. Shop - Wokulski returns\n"
            "- **Paris** — The balloon\n"
            "not a toc entry\n"
            "---\n"
            "- **Later** — ignored\n"
        )
        assert parse_toc(md) == [("Shop", "Wokulski returns"), ("Paris", "The balloon")]

    def test_wrap_study_section(self):
        from tools.handbook_files import wrap_study_section
        assert wrap_study_section("<x/>\n") == "<!-- study-blocks:start -->\n<x/>\n<!-- study-blocks:end -->\n"


class TestPlanFile:
    def test_write_and_read_plan(self, tmp_path, sample_plan):
        from tools.handbook_files import read_plan, write_plan
        path = tmp_path / "nested" / "h.plan.json"
        write_plan(path, sample_plan)
        assert read_plan(path).to_dict() == sample_plan.to_dict()

    def test_read_plan_rejects_non_object(self, tmp_path):
        from tools.handbook_files import read_plan
        path = tmp_path / "bad.plan.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError):
            read_plan(path)


class TestDiscovery:
    def test_find_latest_handbook_by_mtime(self, tmp_path):
        from tools.handbook_files import find_latest_handbook
        old = tmp_path / "handbook-lalka-2025-01-01T00-00-00-000Z.md"
        new = tmp_path / "handbook-lalka-2025-02-01T00-00-00-000Z.md"
        other = tmp_path / "handbook-quo-vadis-2025-03-01T00-00-00-000Z.md"
        for i, p in enumerate([old, new, other]):
            p.write_text("x", encoding="utf-8")
            os.utime(p, (1_000_000 + i * 100, 1_000_000 + i * 100))
        assert find_latest_handbook(tmp_path, "Lalka") == new
        assert find_latest_handbook(tmp_path) == other

    def test_find_latest_handbook_missing_dir(self, tmp_path):
        from tools.handbook_files import find_latest_handbook
        assert find_latest_handbook(tmp_path / "nope") is None

    def test_plan_file_not_mistaken_for_handbook(self, tmp_path):
        from tools.handbook_files import find_latest_handbook
        (tmp_path / "handbook-lalka-2025-01-01T00-00-00-000Z.plan.json").write_text("{}", encoding="utf-8")
        assert find_latest_handbook(tmp_path, "Lalka") is None

    def test_list_chapter_files_numeric_order(self, tmp_path):
        from tools.handbook_files import list_chapter_files
        for name in ["ch-10-end.md", "ch-02-middle.md", "ch-01-start.md", "_STUDY_SECTION.md", "notes.txt"]:
            (tmp_path / name).write_text("x", encoding="utf-8")
        assert [p.name for p in list_chapter_files(tmp_path)] == ["ch-01-start.md", "ch-02-middle.md", "ch-10-end.md"]

    def test_chapter_number_from_file_name(self):
        from tools.handbook_files import chapter_number
        assert chapter_number("ch-07-the-duel.md") == 7
        assert chapter_number("ch-112-late.md") == 112
        assert chapter_number("_STUDY_SECTION.md") is None
