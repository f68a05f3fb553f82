"""Text utilities: slugs, code fences, sentence and bullet extraction."""

import re
import unicodedata

# Letters that survive NFD decomposition unchanged
_TRANSLITERATION = str.maketrans({
    "ł": "l", "Ł": "l",
    "đ": "d", "Đ": "d",
    "ø": "o", "Ø": "o",
    "ß": "ss",
    "æ": "ae", "Æ": "ae",
    "œ": "oe", "Œ": "oe",
})

_CODE_FENCE_RE = re.compile(r"^```[a-zA-Z0-9-]*\n(.*?)\n```$", re.DOTALL)
_HEADING_LINE_RE = re.compile(r"^#{1,6}\s.*$", re.MULTILINE)
_ORIENTATION_RE = re.compile(r"\*\[.+?\]\*")
_HTML_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_ANCHOR_RE = re.compile(r"\{#[^}]*\}")
_HTML_TAG_RE = re.compile(r"<[^>]+>")
_SECTION_HEADING_RE = re.compile(r"^##\s+(.+?)\s*$")
_BULLET_RE = re.compile(r"^\s*[-*]\s+(.+?)\s*$")

KEY_EVENT_MIN_CHARS = 20
KEY_EVENT_MAX_CHARS = 220


def slugify(text: str, max_length: int = 120) -> str:
    """Lowercase ASCII slug: diacritics stripped, non-alphanumerics collapsed to '-'."""
    text = (text or "").lower().translate(_TRANSLITERATION)
    text = unicodedata.normalize("NFD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    return text[:max_length].rstrip("-")


def unwrap_code_fence(text: str) -> str:
    """Strip a surrounding ```lang ... ``` fence, if any."""
    trimmed = (text or "").replace("\r", "").strip()
    match = _CODE_FENCE_RE.match(trimmed)
    if match:
        return match.group(1).strip()
    trimmed = re.sub(r"^```[a-zA-Z0-9-]*\n?", "", trimmed)
    trimmed = re.sub(r"\n?```$", "", trimmed)
    return trimmed.strip()


def sanitize_chapter_title(title: str) -> str:
    """Remove anchors like {#ch-03}, HTML tags and redundant whitespace."""
    title = _ANCHOR_RE.sub("", title or "")
    title = _HTML_TAG_RE.sub("", title)
    return re.sub(r"\s+", " ", title).strip()


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len((text or "").split())


def split_sentences(text: str) -> list[str]:
    """Split prose on sentence terminators, dropping empty fragments."""
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text or "") if s.strip()]


def extract_key_events(chapter_md: str, head: int = 3, tail: int = 2) -> list[str]:
    """Pick representative sentences from a chapter for continuity context.

    Headings, orientation markers and HTML comments are removed first. Of the
    sentences between KEY_EVENT_MIN_CHARS and KEY_EVENT_MAX_CHARS long, the
    first ``head`` and last ``tail`` are returned in document order without
    duplicates.
    """
    text = _HTML_COMMENT_RE.sub("", chapter_md or "")
    text = _HEADING_LINE_RE.sub("", text)
    text = _ORIENTATION_RE.sub("", text)
    sentences = [
        " ".join(s.split())
        for s in split_sentences(text)
    ]
    sentences = [s for s in sentences if KEY_EVENT_MIN_CHARS <= len(s) <= KEY_EVENT_MAX_CHARS]

    indexes = list(range(min(head, len(sentences))))
    indexes += [i for i in range(max(0, len(sentences) - tail), len(sentences)) if i not in indexes]

    events: list[str] = []
    for i in indexes:
        if sentences[i] not in events:
            events.append(sentences[i])
    return events


def parse_markdown_sections(md: str) -> list[tuple[str, list[str]]]:
    """Return (heading, bullet items) pairs for every ``## `` section."""
    sections: list[tuple[str, list[str]]] = []
    for line in (md or "").replace("\r", "").split("\n"):
        heading = _SECTION_HEADING_RE.match(line)
        if heading:
            sections.append((heading.group(1), []))
            continue
        bullet = _BULLET_RE.match(line)
        if bullet and sections:
            sections[-1][1].append(bullet.group(1))
    return sections
