"""Typed Markdown document model for generated chapters.

Generated chapters are parsed into a flat list of blocks, normalized on that
list, and rendered once. Rendering never produces more than one blank line
between blocks, and ``normalize`` applied to its own output is a no-op.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class BlockKind(str, Enum):
    HEADING = "heading"
    ORIENTATION = "orientation"
    TRANSITION = "transition"
    PARAGRAPH = "paragraph"
    BLOCKQUOTE = "blockquote"
    BULLET_LIST = "bullet_list"
    HTML_COMMENT = "html_comment"
    RULE = "rule"


@dataclass
class Block:
    kind: BlockKind
    text: str = ""
    level: int = 0
    items: list[str] = field(default_factory=list)

    def render(self) -> str:
        if self.kind == BlockKind.HEADING:
            return f"{'#' * self.level} {self.text}"
        if self.kind == BlockKind.ORIENTATION:
            return f"*[{self.text}]*"
        if self.kind == BlockKind.TRANSITION:
            return f"*Transition:* {self.text}".rstrip()
        if self.kind == BlockKind.BLOCKQUOTE:
            return "\n".join(f"> {line}".rstrip() for line in self.items)
        if self.kind == BlockKind.BULLET_LIST:
            return "\n".join(f"- {item}" for item in self.items)
        if self.kind == BlockKind.RULE:
            return "---"
        return self.text


_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)(?:\s+#+)?\s*$")
_LABELLED_ORIENTATION_RE = re.compile(
    r"^\*?\[\s*(?:place|miejsce)\s*:\s*([^;\]]+);\s*(?:time|pora|czas)\s*:\s*([^;\]]+);"
    r"\s*(?:who|kto|characters|bohaterowie)\s*:\s*([^\]]+)\]\*?$",
    re.IGNORECASE,
)
_ITALIC_ORIENTATION_RE = re.compile(r"^\*\[([^\[\]]+?)\]\*$")
_BARE_ORIENTATION_RE = re.compile(r"^\[([^\[\]]+?)\]$")
_TRANSITION_RE = re.compile(r"^\*?(?:Transition|Transitions)\s*:\s*\*?\s*(.*)$", re.IGNORECASE)
_BULLET_RE = re.compile(r"^[-+*]\s+(.*)$")
_QUOTE_RE = re.compile(r"^>\s?(.*)$")
_COMMENT_RE = re.compile(r"^<!--.*-->$")
_RULE_RE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")


def _classify(line: str) -> tuple[BlockKind, Optional[re.Match]]:
    for kind, pattern in (
        (BlockKind.HEADING, _HEADING_RE),
        (BlockKind.RULE, _RULE_RE),
        (BlockKind.HTML_COMMENT, _COMMENT_RE),
        (BlockKind.ORIENTATION, _LABELLED_ORIENTATION_RE),
        (BlockKind.ORIENTATION, _ITALIC_ORIENTATION_RE),
        (BlockKind.ORIENTATION, _BARE_ORIENTATION_RE),
        (BlockKind.TRANSITION, _TRANSITION_RE),
        (BlockKind.BULLET_LIST, _BULLET_RE),
        (BlockKind.BLOCKQUOTE, _QUOTE_RE),
    ):
        match = pattern.match(line)
        if match:
            return kind, match
    return BlockKind.PARAGRAPH, None


def _orientation_text(match: re.Match) -> str:
    return "; ".join(" ".join(group.split()) for group in match.groups())


@dataclass
class MarkdownDocument:
    blocks: list[Block] = field(default_factory=list)

    @classmethod
    def parse(cls, markdown: str) -> "MarkdownDocument":
        """Parse Markdown text into blocks."""
        blocks: list[Block] = []
        current: Optional[Block] = None

        for raw in (markdown or "").replace("\r", "").split("\n"):
            line = raw.strip()
            if not line:
                current = None
                continue

            kind, match = _classify(line)

            if kind == BlockKind.PARAGRAPH:
                if current is not None and current.kind == BlockKind.PARAGRAPH:
                    current.text += "\n" + line
                else:
                    current = Block(BlockKind.PARAGRAPH, text=line)
                    blocks.append(current)
                continue

            if kind in (BlockKind.BULLET_LIST, BlockKind.BLOCKQUOTE):
                item = match.group(1).strip()
                if current is not None and current.kind == kind:
                    current.items.append(item)
                else:
                    current = Block(kind, items=[item])
                    blocks.append(current)
                continue

            current = None
            if kind == BlockKind.HEADING:
                blocks.append(Block(kind, text=match.group(2), level=len(match.group(1))))
            elif kind == BlockKind.ORIENTATION:
                blocks.append(Block(kind, text=_orientation_text(match)))
            elif kind == BlockKind.TRANSITION:
                blocks.append(Block(kind, text=match.group(1).strip()))
            else:
                blocks.append(Block(kind, text=line))

        return cls(blocks)

    def normalize(
        self,
        chapter_heading: Optional[str] = None,
        chapter_label: str = "Chapter",
    ) -> "MarkdownDocument":
        """Return a cleaned copy of the document.

        - consecutive identical headings are collapsed
        - a run of orientation markers keeps only its first marker
        - when ``chapter_heading`` is given and no ``## {label} N:`` heading
          exists, it is inserted as the first block
        """
        out: list[Block] = []
        for block in self.blocks:
            previous = out[-1] if out else None
            if previous is not None and previous.kind == block.kind:
                if block.kind == BlockKind.HEADING and (previous.level, previous.text) == (block.level, block.text):
                    continue
                if block.kind == BlockKind.ORIENTATION:
                    continue
            if block.kind == BlockKind.PARAGRAPH and not block.text.strip():
                continue
            out.append(Block(block.kind, block.text, block.level, list(block.items)))

        if chapter_heading:
            heading_re = re.compile(rf"^{re.escape(chapter_label)}\s+\d+\s*:", re.IGNORECASE)
            if not any(b.kind == BlockKind.HEADING and b.level == 2 and heading_re.match(b.text) for b in out):
                out.insert(0, Block(BlockKind.HEADING, text=chapter_heading, level=2))

        return MarkdownDocument(out)

    def render(self) -> str:
        """Render blocks separated by single blank lines, ending with a newline."""
        if not self.blocks:
            return ""
        return "\n\n".join(block.render() for block in self.blocks) + "\n"

    def headings(self, level: Optional[int] = None) -> list[str]:
        return [
            b.text for b in self.blocks
            if b.kind == BlockKind.HEADING and (level is None or b.level == level)
        ]

    def prose(self) -> str:
        """Paragraph and blockquote text only, for sentence extraction."""
        parts = []
        for block in self.blocks:
            if block.kind == BlockKind.PARAGRAPH:
                parts.append(block.text)
            elif block.kind == BlockKind.BLOCKQUOTE:
                parts.append("\n".join(block.items))
        return "\n\n".join(parts)


def normalize_chapter_markdown(
    markdown: str,
    chapter_heading: Optional[str] = None,
    chapter_label: str = "Chapter",
) -> str:
    """Parse, normalize and render a generated chapter."""
    return MarkdownDocument.parse(markdown).normalize(chapter_heading, chapter_label).render()
