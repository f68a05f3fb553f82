"""Concept page layout: style variants, fallback page and the format guard.

A concept page is Markdown with a fixed skeleton::

    # Title
    > **Study time:** ...          (five metadata lines)
    ### Learning goal
    ### Content                    (repeats the H1, then a lead blockquote)
    ### Question / Source / Teaser

Generated pages are forced into this skeleton by ``ensure_formatted_concept``.
"""

import re
from dataclasses import dataclass
from typing import Optional

from models.concept import TopicContext
from tools.text_utils import unwrap_code_fence

GOAL_HEADING = "### Learning goal"
CONTENT_HEADING = "### Content"
TEASER_HEADING = "### Question / Source / Teaser"

# (label, default) in display order; the last one defaults to the topic title
METADATA_FIELDS: list[tuple[str, Optional[str]]] = [
    ("Study time", "about 5 minutes"),
    ("Difficulty", "2"),
    ("Material type", "Core topic"),
    ("Skills", "interpretation, context analysis"),
    ("Related", None),
]

_METADATA_START_RE = re.compile(r"^>\s*\*\*Study time:\*\*")
_METADATA_LINE_RE = re.compile(r"^>\s*\*\*(.+?):\*\*\s*(.+?)\s*$")
_CONTENT_LEAD_RE = re.compile(
    r"(^###\s+Content\s*$)([\s\S]*?)(^#\s+.*$)(\n>[\s\S]*?\n)", re.MULTILINE,
)
_SENTENCE_END_RE = re.compile(r"[.!?](?:\s|$)")
_SOURCE_ITEM_RE = re.compile(r"^-\s*\[")

_STOPWORDS = {
    "about", "also", "and", "because", "from", "have", "into", "more", "over", "such",
    "than", "that", "their", "there", "these", "this", "topic", "section", "subject",
    "description", "what", "when", "which", "with", "oraz", "przez", "jako", "temat",
    "sekcja", "przedmiot", "opis", "kontekst",
}


@dataclass(frozen=True)
class StyleVariant:
    name: str
    style_hint: str
    lead_at_end: bool = False
    italic_fragment: bool = False
    bold_heading: bool = False
    pull_quote: bool = False

    def flags(self) -> list[str]:
        names = ("lead_at_end", "italic_fragment", "bold_heading", "pull_quote")
        return [n for n in names if getattr(self, n)]


STYLE_VARIANTS: list[StyleVariant] = [
    StyleVariant("classic", "Clear and academic but lively; 2-4 **terms** in bold."),
    StyleVariant("dialogue", "Dialogic tension; at most one question per paragraph.", italic_fragment=True),
    StyleVariant("case", "Case study: example, then rule, then limits.", bold_heading=True),
    StyleVariant("contrast", "Two perspectives, closed by a short synthesis.", pull_quote=True),
    StyleVariant("magazine", "An image or metaphor; short sentences; rhythm.", bold_heading=True, italic_fragment=True),
    StyleVariant("closing", "A concluding lead at the end for a sense of closure.", lead_at_end=True, italic_fragment=True),
]


def fnv1a_32(text: str) -> int:
    h = 2166136261
    for ch in text:
        h ^= ord(ch)
        h = (h * 16777619) & 0xFFFFFFFF
    return h


def pick_variant(title: str) -> StyleVariant:
    """Stable variant per title, so reruns keep a page's style."""
    return STYLE_VARIANTS[fnv1a_32(title) % len(STYLE_VARIANTS)]


def derive_keywords(topic: TopicContext) -> list[str]:
    """3-5 distinctive words of the topic context, suggested for bold terms."""
    source = f"{topic.subject} {topic.section} {topic.title} {topic.description}".lower()
    unique: list[str] = []
    for word in re.findall(r"[^\W\d_]{4,}", source):
        if word not in _STOPWORDS and word not in unique:
            unique.append(word)
    return unique[: min(5, max(3, len(unique) // 3 or 3))]


def metadata_block(values: dict[str, str], relation: str) -> list[str]:
    """The five metadata lines; all but the last end with a Markdown line break."""
    lines = []
    for i, (label, default) in enumerate(METADATA_FIELDS):
        value = values.get(label) or default or relation
        suffix = "  " if i < len(METADATA_FIELDS) - 1 else ""
        lines.append(f"> **{label}:** {value}{suffix}")
    return lines


def fallback_concept_markdown(title: str, topic: TopicContext) -> str:
    """Skeleton page used when the generator fails."""
    return "\n".join([
        f"# {title}",
        "",
        *metadata_block({}, topic.title),
        "",
        GOAL_HEADING,
        f"1-2 sentences: what the student will understand within the topic \"{topic.title}\".",
        "",
        CONTENT_HEADING,
        f"# {title}",
        "> A short lead sentence that sets direction and context.",
        "",
        "A first short paragraph (2-4 sentences).",
        "",
        "A second short paragraph (2-4 sentences).",
        "",
        TEASER_HEADING,
        "One sentence: a question or curiosity that closes the thread.",
    ])


def collapse_to_sentence(text: str, max_chars: int = 220) -> str:
    """First sentence of ``text``, cut at a word boundary when too long."""
    clean = re.sub(r"\s+", " ", text).strip()
    match = _SENTENCE_END_RE.search(clean)
    cut = clean[: match.start() + 1] if match else clean
    if len(cut) > max_chars:
        cut = re.sub(r"\s+\S*$", "", cut[:max_chars])
    return cut or clean[:120]


def normalize_metadata_block(markdown: str, relation: str) -> str:
    """Rewrite the metadata blockquote as exactly five lines, filling defaults.

    Without a metadata block, a default one is inserted after the H1.
    """
    lines = markdown.split("\n")
    start = next((i for i, line in enumerate(lines) if _METADATA_START_RE.match(line)), None)
    if start is None:
        return "\n".join([lines[0], "", *metadata_block({}, relation), "", *lines[1:]])

    end = start
    values: dict[str, str] = {}
    while end < len(lines) and re.match(r"^\s*>", lines[end]):
        match = _METADATA_LINE_RE.match(lines[end].rstrip())
        if match:
            values[match.group(1).strip()] = match.group(2).strip()
        end += 1

    head = "\n".join(lines[:start]).rstrip("\n")
    tail = "\n".join(lines[end:]).lstrip("\n")
    return "\n".join([head, "", *metadata_block(values, relation), "", tail])


def ensure_formatted_concept(markdown: str, title: str, topic_title: str, variant: StyleVariant) -> str:
    """Force a generated page into the concept skeleton.

    Text between the H1 and the metadata is collapsed to one sentence and
    moved under the Content lead. Missing sections get placeholders.
    """
    out = unwrap_code_fence(markdown or "")
    if not out.startswith("# "):
        out = f"# {title}\n\n{out}"

    lines = out.split("\n")
    meta_start = next((i for i, line in enumerate(lines) if i > 0 and _METADATA_START_RE.match(line)), None)
    stray: list[str] = []
    if meta_start is not None and meta_start > 1:
        stray = [line for line in lines[1:meta_start] if line.strip()]
        out = "\n".join([lines[0], "", *lines[meta_start:]])

    out = normalize_metadata_block(out, topic_title or title)

    if stray:
        sentence = collapse_to_sentence(" ".join(stray))
        insert = f"\n*{sentence}*\n" if variant.italic_fragment else f"\n{sentence}\n"
        out = _CONTENT_LEAD_RE.sub(
            lambda m: f"{m.group(1)}\n{m.group(3)}{m.group(4)}{insert}", out, count=1,
        )

    if not re.search(r"^###\s+Learning goal\s*$", out, re.MULTILINE):
        out += f"\n\n{GOAL_HEADING}\n<1-2 sentences>\n"
    if not re.search(r"^###\s+Content\s*$", out, re.MULTILINE):
        out += f"\n\n{CONTENT_HEADING}\n# {title}\n> <lead>\n\n<paragraph 1>\n\n<paragraph 2>\n"
    elif not re.search(r"^###\s+Content\s*$[\s\S]*?^#\s+", out, re.MULTILINE):
        out = re.sub(r"^###\s+Content\s*$", lambda m: f"{CONTENT_HEADING}\n# {title}", out, count=1, flags=re.MULTILINE)
    if not re.search(r"^###\s+Question\s*/\s*Source\s*/\s*Teaser\s*$", out, re.MULTILINE):
        out += f"\n\n{TEASER_HEADING}\n<1 sentence>\n"

    return re.sub(r"\n{3,}", "\n\n", out).strip() + "\n"


# ---- Source material ----

def prune_source_items(markdown: str, count: int) -> str:
    """Keep the first ``count`` ``- [title](url)`` items with their indented lines."""
    kept: list[str] = []
    items = 0
    skipping = False
    for line in markdown.split("\n"):
        if _SOURCE_ITEM_RE.match(line):
            items += 1
            skipping = items > count
        elif skipping and line.strip() and not line[0].isspace():
            skipping = False
        if not skipping:
            kept.append(line)
    return re.sub(r"\n{3,}", "\n\n", "\n".join(kept)).strip()


def count_source_items(markdown: str) -> int:
    return sum(1 for line in markdown.split("\n") if _SOURCE_ITEM_RE.match(line))
