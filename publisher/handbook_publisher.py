"""Handbook Publisher: pushes a generated handbook into the database.

One handbook row (keyed by slug), one chapter slot per chapter file with a
0-based sort order, and the study section as the final slot. Re-running is
idempotent: slots are upserted and content is overwritten.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from config.exceptions import ValidationError, WorkflowError
from config.settings import Settings, get_settings
from models.database import Database
from tools.handbook_files import (
    STUDY_SECTION_FILENAME,
    HandbookPaths,
    chapter_number,
    find_latest_handbook,
    handbook_title,
    list_chapter_files,
    parse_intro,
    parse_toc,
    parse_work_title,
    read_plan,
)
from tools.markdown_doc import MarkdownDocument

logger = logging.getLogger(__name__)

STUDY_SECTION_TITLE = "Study section"


@dataclass
class PublishResult:
    handbook_id: int
    title: str
    chapters_pushed: int
    study_section_pushed: bool
    chapters_count: int


def _handbook_for_chapters_dir(chapters_dir: Path) -> Path:
    """``handbook-x-ts.chapters`` → ``handbook-x-ts.md``."""
    name = chapters_dir.name
    stem = name[: -len(".chapters")] if name.endswith(".chapters") else name
    return chapters_dir.with_name(f"{stem}.md")


def _title_from_file(path: Path) -> str:
    doc = MarkdownDocument.parse(path.read_text(encoding="utf-8"))
    headings = doc.headings()
    return headings[0] if headings else path.stem


class HandbookPublisher:
    """Publishes chapter files and the study section of a handbook."""

    def __init__(self, db: Optional[Database] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.db = db or Database(self.settings.sqlite_db_path)

    def _locate(self, chapters_dir: Optional[str | Path], work_title: Optional[str]) -> HandbookPaths:
        if chapters_dir:
            return HandbookPaths(_handbook_for_chapters_dir(Path(chapters_dir)))
        latest = find_latest_handbook(self.settings.output_dir, work_title)
        if latest is None:
            raise WorkflowError(
                "No handbook found to finish",
                {"out_dir": str(self.settings.output_dir), "work": work_title or "*"},
            )
        return HandbookPaths(latest)

    def _chapter_metadata(self, paths: HandbookPaths, markdown: str) -> dict[int, tuple[str, str]]:
        """(title, description) by chapter number: plan file first, table of contents second."""
        if paths.plan_path.exists():
            try:
                plan = read_plan(paths.plan_path)
                return {ch.index: (ch.title, ch.description) for ch in plan.chapters}
            except (OSError, ValueError) as e:
                logger.warning("Plan file unreadable (%s); falling back to table of contents", e)
        return dict(enumerate(parse_toc(markdown), start=1))

    def finish(
        self,
        chapters_dir: Optional[str | Path] = None,
        work_title: Optional[str] = None,
        from_: Optional[int] = None,
        to: Optional[int] = None,
        include_study_section: bool = True,
    ) -> PublishResult:
        """Push chapter contents ``from_..to`` (1-based, inclusive) and the study section.

        Raises:
            WorkflowError: no handbook could be located.
            ValidationError: no chapter files or no work title.
            DatabaseError: any persistence failure.
        """
        paths = self._locate(chapters_dir, work_title)
        files = list_chapter_files(paths.chapters_dir)
        if not files:
            raise ValidationError("No chapter files to publish", {"dir": str(paths.chapters_dir)})

        markdown = ""
        if paths.markdown_path.exists():
            markdown = paths.markdown_path.read_text(encoding="utf-8")
        work = work_title or parse_work_title(markdown)
        if not work:
            raise ValidationError("Cannot determine the work title; pass it explicitly",
                                  {"handbook": str(paths.markdown_path)})

        title = handbook_title(work)
        handbook_id = self.db.upsert_handbook(title, parse_intro(markdown))
        logger.info("Publishing %r (id=%d) from %s", title, handbook_id, paths.chapters_dir)

        metadata = self._chapter_metadata(paths, markdown)
        count = len(files)
        for i, path in enumerate(files):
            # slots follow file order; metadata follows the NN in the file name
            entry = metadata.get(chapter_number(path))
            if entry is not None:
                ch_title, ch_description = entry
            else:
                ch_title, ch_description = _title_from_file(path), ""
            self.db.ensure_chapter_slot(handbook_id, i, ch_title, ch_description)

        first = max(1, from_ or 1)
        last = min(count, to or count)
        pushed = 0
        for number in range(first, last + 1):
            path = files[number - 1]
            self.db.set_chapter_content(handbook_id, number - 1, path.read_text(encoding="utf-8").strip())
            logger.info("Pushed %s -> sort_order=%d", path.name, number - 1)
            pushed += 1

        study_pushed = False
        study_path = paths.chapters_dir / STUDY_SECTION_FILENAME
        if include_study_section and study_path.exists():
            self.db.ensure_chapter_slot(handbook_id, count, STUDY_SECTION_TITLE, "")
            self.db.set_chapter_content(handbook_id, count, study_path.read_text(encoding="utf-8").strip())
            logger.info("Pushed %s -> sort_order=%d", study_path.name, count)
            study_pushed = True
            count += 1

        self.db.update_chapter_count(handbook_id, count)
        return PublishResult(handbook_id, title, pushed, study_pushed, count)
