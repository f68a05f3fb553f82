"""Chapter, study block and persisted record models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class ChapterSummary:
    """Continuity digest of a written chapter, fed to later chapters."""
    index: int
    title: str
    key_events: list[str] = field(default_factory=list)
    key_quotes: list[str] = field(default_factory=list)


@dataclass
class StudyBlock:
    """One section of the exam-prep summary."""
    id: str
    title: str
    items: list[str] = field(default_factory=list)

    @property
    def data_type(self) -> str:
        return self.id[len("study-"):] if self.id.startswith("study-") else self.id


@dataclass
class HandbookRecord:
    """Represents a persisted handbook row."""
    id: Optional[int] = None
    title: str = ""
    slug: str = ""
    description: str = ""
    chapters_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ChapterRecord:
    """Represents a persisted chapter slot; content is None until pushed."""
    id: Optional[int] = None
    handbook_id: int = 0
    sort_order: int = 0
    title: str = ""
    description: str = ""
    content: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
