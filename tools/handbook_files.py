"""On-disk layout of a generated handbook and its table of contents."""

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from models.enums import ChapterType
from models.plan import NarrativePlan
from tools.text_utils import slugify

HANDBOOK_PREFIX = "handbook-"
TITLE_SUFFIX = "abridged"
TOC_HEADING = "Table of contents"
STUDY_SECTION_FILENAME = "_STUDY_SECTION.md"
STUDY_BLOCKS_START = "<!-- study-blocks:start -->"
STUDY_BLOCKS_END = "<!-- study-blocks:end -->"

_TIMESTAMP_RE = r"\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z"
_CHAPTER_FILE_RE = re.compile(r"^ch-(\d{2,})-.*\.md$")
_TOC_HEADING_RE = re.compile(rf"^##\s*{TOC_HEADING}\s*$", re.IGNORECASE)
_TOC_BOLD_RE = re.compile(r"^(?:-?\s*\d+\.\s*|-\s*)?\*\*(.+?)\*\*\s*(?:\[[^\]]*\]\s*)?[—–-]\s*(.+?)\s*$")
_TOC_PLAIN_RE = re.compile(r"^(?:-?\s*\d+\.\s*|-\s*)?(.+?)\s+[—–-]\s+(.+?)\s*$")
_TITLE_RE = re.compile(rf"^#\s+(.+?)\s+[—–-]\s+{TITLE_SUFFIX}\s*$", re.IGNORECASE | re.MULTILINE)

_TYPE_LABELS = {
    ChapterType.DIARY: "[diary]",
    ChapterType.LETTER: "[letter]",
    ChapterType.MONOLOGUE: "[monologue]",
    ChapterType.NEWSPAPER: "[newspaper]",
    ChapterType.FOUND_DOCUMENT: "[document]",
}


def make_timestamp(now: Optional[datetime] = None) -> str:
    """Filesystem-safe UTC timestamp, e.g. 2025-01-31T09-15-02-123Z."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


def handbook_title(work_title: str) -> str:
    return f"{work_title} — {TITLE_SUFFIX}"


def chapter_filename(index: int, title: str) -> str:
    return f"ch-{index:02d}-{slugify(title) or 'chapter'}.md"


@dataclass(frozen=True)
class HandbookPaths:
    """All artifact paths derived from one handbook markdown file."""
    markdown_path: Path

    @classmethod
    def create(cls, out_dir: str | Path, work_title: str, timestamp: Optional[str] = None) -> "HandbookPaths":
        name = f"{HANDBOOK_PREFIX}{slugify(work_title)}-{timestamp or make_timestamp()}.md"
        return cls(Path(out_dir) / name)

    @property
    def stem(self) -> str:
        return self.markdown_path.name[: -len(".md")]

    @property
    def plan_path(self) -> Path:
        return self.markdown_path.with_name(f"{self.stem}.plan.json")

    @property
    def custom_example_path(self) -> Path:
        return self.markdown_path.with_name(f"{self.stem}.custom-example.json")

    @property
    def chapters_dir(self) -> Path:
        return self.markdown_path.with_name(f"{self.stem}.chapters")

    @property
    def study_section_path(self) -> Path:
        return self.chapters_dir / STUDY_SECTION_FILENAME

    def chapter_path(self, index: int, title: str) -> Path:
        return self.chapters_dir / chapter_filename(index, title)


def find_latest_handbook(out_dir: str | Path, work_title: Optional[str] = None) -> Optional[Path]:
    """Most recently modified handbook markdown in ``out_dir`` (optionally for one work)."""
    out_dir = Path(out_dir)
    if not out_dir.is_dir():
        return None
    if work_title:
        pattern = re.compile(rf"^{HANDBOOK_PREFIX}{re.escape(slugify(work_title))}-{_TIMESTAMP_RE}\.md$")
    else:
        pattern = re.compile(rf"^{HANDBOOK_PREFIX}.+\.md$")
    candidates = [p for p in out_dir.iterdir() if p.is_file() and pattern.match(p.name)]
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


def chapter_number(path: str | Path) -> Optional[int]:
    """The ``NN`` of a ``ch-NN-*.md`` file name, or None for other files."""
    match = _CHAPTER_FILE_RE.match(Path(path).name)
    return int(match.group(1)) if match else None


def list_chapter_files(chapters_dir: str | Path) -> list[Path]:
    """Chapter files ``ch-NN-*.md`` sorted by chapter number."""
    chapters_dir = Path(chapters_dir)
    if not chapters_dir.is_dir():
        return []
    files = [p for p in chapters_dir.iterdir() if _CHAPTER_FILE_RE.match(p.name)]
    return sorted(files, key=lambda p: (int(_CHAPTER_FILE_RE.match(p.name).group(1)), p.name))


def render_toc_line(index: int, title: str, description: str, chapter_type: ChapterType = ChapterType.SCENE) -> str:
    label = _TYPE_LABELS.get(chapter_type)
    head = f"**{title}** {label}" if label else f"**{title}**"
    return f"- {index}. {head} — {description}"


def render_handbook_markdown(work_title: str, intro: str, plan: NarrativePlan) -> str:
    """Handbook file: title, intro paragraph, and a table of contents built from the plan."""
    lines = [f"# {handbook_title(work_title)}", ""]
    if intro.strip():
        lines += [intro.strip(), ""]
    lines += [f"## {TOC_HEADING}", ""]
    lines += [render_toc_line(ch.index, ch.title, ch.description, ch.type) for ch in plan.chapters]
    return "\n".join(lines) + "\n"


def parse_toc(markdown: str) -> list[tuple[str, str]]:
    """Read (title, description) pairs back from a handbook's table of contents."""
    items: list[tuple[str, str]] = []
    in_toc = False
    for raw in (markdown or "").replace("\r", "").split("\n"):
        line = raw.strip()
        if _TOC_HEADING_RE.match(line):
            in_toc = True
            continue
        if not in_toc or not line:
            continue
        if line.startswith("```") or re.match(r"^---+$", line) or line.startswith("#"):
            break
        match = _TOC_BOLD_RE.match(line) or _TOC_PLAIN_RE.match(line)
        if match:
            title, description = match.group(1).strip(), match.group(2).strip()
            if title and description:
                items.append((title, description))
    return items


def parse_work_title(markdown: str) -> Optional[str]:
    """Work title from a ``# {title} — abridged`` heading."""
    match = _TITLE_RE.search(markdown or "")
    return match.group(1).strip() if match else None


def parse_intro(markdown: str) -> str:
    """Text between the title heading and the table of contents."""
    match = re.search(
        rf"^#\s+.+?\n+(.*?)\n+##\s*{TOC_HEADING}",
        markdown or "",
        re.MULTILINE | re.DOTALL | re.IGNORECASE,
    )
    return match.group(1).strip() if match else ""


def wrap_study_section(html: str) -> str:
    return f"{STUDY_BLOCKS_START}\n{html.rstrip()}\n{STUDY_BLOCKS_END}\n"


def write_plan(path: str | Path, plan: NarrativePlan):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(plan.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")


def read_plan(path: str | Path) -> NarrativePlan:
    """Load a ``.plan.json`` file. Raises OSError or ValueError when unreadable."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Plan file is not a JSON object: {path}")
    return NarrativePlan.from_dict(data)
