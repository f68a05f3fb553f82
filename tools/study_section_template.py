"""Deterministic HTML renderer for the exam-prep study section.

Chapter references such as ``(Chapter 3)``, ``(Chapter 1, 6)`` or
``(Chapter 3–5)`` keep their visible text; only the numerals become links.
Everything else is escaped and emitted as-is. The same input always yields
byte-identical output.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from models.chapter import StudyBlock
from models.enums import LinkMode

_LIST_SEPARATOR_RE = re.compile(r"(\s*,\s*)")
_RANGE_RE = re.compile(r"^(\d{1,2})(\s*)([-–—])(\s*)(\d{1,2})$")
_SINGLE_RE = re.compile(r"^(\d{1,2})$")


@dataclass(frozen=True)
class LinkStrategy:
    """How chapter numerals are turned into hrefs.

    ``none``: no links. ``hash``: ``#ch-NN``. ``map``: looked up in
    ``href_map``; numerals missing from the map stay plain text.
    """
    mode: LinkMode = LinkMode.HASH
    href_map: dict[int, str] = field(default_factory=dict)

    @classmethod
    def none(cls) -> "LinkStrategy":
        return cls(LinkMode.NONE)

    @classmethod
    def hash(cls) -> "LinkStrategy":
        return cls(LinkMode.HASH)

    @classmethod
    def mapping(cls, href_map: dict[int, str]) -> "LinkStrategy":
        return cls(LinkMode.MAP, dict(href_map))

    def href_for(self, number: int) -> Optional[str]:
        if self.mode == LinkMode.HASH:
            return f"#ch-{number:02d}"
        if self.mode == LinkMode.MAP:
            return self.href_map.get(number)
        return None


def escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _numeral(digits: str, strategy: LinkStrategy) -> str:
    href = strategy.href_for(int(digits))
    if href:
        return f'<a href="{escape_html(href)}">{escape_html(digits)}</a>'
    return escape_html(digits)


def _split_padding(chunk: str) -> tuple[str, str, str]:
    token = chunk.strip()
    if not token:
        return chunk, "", ""
    start = chunk.index(token)
    return chunk[:start], token, chunk[start + len(token):]


def _render_reference_list(inner: str, strategy: LinkStrategy) -> str:
    """Render the text between ``(Chapter `` and ``)`` with linked numerals."""
    out = []
    for i, chunk in enumerate(_LIST_SEPARATOR_RE.split(inner)):
        if i % 2 == 1:
            out.append(escape_html(chunk))
            continue
        lead, token, trail = _split_padding(chunk)
        out.append(escape_html(lead))
        range_match = _RANGE_RE.match(token)
        single_match = _SINGLE_RE.match(token)
        if range_match:
            first, space_a, dash, space_b, last = range_match.groups()
            out.append(
                _numeral(first, strategy)
                + escape_html(space_a + dash + space_b)
                + _numeral(last, strategy)
            )
        elif single_match:
            out.append(_numeral(single_match.group(1), strategy))
        else:
            out.append(escape_html(token))
        out.append(escape_html(trail))
    return "".join(out)


def linkify_chapter_refs(text: str, strategy: LinkStrategy, chapter_word: str = "Chapter") -> str:
    """Escape ``text`` and link every closed ``(Chapter ...)`` reference."""
    if strategy.mode == LinkMode.NONE:
        return escape_html(text)

    opener = f"({chapter_word} "
    out = []
    pos = 0
    while pos < len(text):
        start = text.find(opener, pos)
        if start == -1:
            out.append(escape_html(text[pos:]))
            break
        out.append(escape_html(text[pos:start]))
        inner_start = start + len(opener)
        end = text.find(")", inner_start)
        if end == -1:
            # Unclosed reference: plain text
            out.append(escape_html(opener))
            pos = inner_start
            continue
        out.append(escape_html(opener))
        out.append(_render_reference_list(text[inner_start:end], strategy))
        out.append(")")
        pos = end + 1
    return "".join(out)


def _render_block(block: StudyBlock, strategy: LinkStrategy, chapter_word: str) -> str:
    items = "\n".join(
        f"<li>{linkify_chapter_refs(item, strategy, chapter_word)}</li>" for item in block.items
    )
    lines = [
        f'<study-block id="{escape_html(block.id)}" data-type="{escape_html(block.data_type)}">',
        f"  <h2>{escape_html(block.title)}</h2>",
        "  <ul>",
    ]
    if items:
        lines.append(items)
    lines += ["  </ul>", "</study-block>"]
    return "\n".join(lines)


def render_study_section(
    blocks: list[StudyBlock],
    strategy: Optional[LinkStrategy] = None,
    chapter_word: str = "Chapter",
) -> str:
    """Render study blocks, in the given order, as a ``<study-section>`` element."""
    strategy = strategy or LinkStrategy.hash()
    inner = "\n\n".join(_render_block(b, strategy, chapter_word) for b in blocks)
    return "\n".join([
        "<study-section>",
        "  <study-global>",
        inner,
        "  </study-global>",
        "</study-section>",
        "",
    ])
