"""Milestone data models: canonical plot events of a literary work."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

MAX_KEYWORDS = 6
MAX_KEY_FACTS = 8
MAX_SOURCE_URLS = 4


def _string_list(value, limit: int) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, str) and v.strip()][:limit]


@dataclass
class Milestone:
    """A canonical scene that the abridged handbook must cover."""
    id: str
    title: str
    description: str = ""
    must_be_scene: bool = False
    chapter_hint: Optional[str] = None
    keywords: list[str] = field(default_factory=list)
    key_facts: list[str] = field(default_factory=list)
    source_urls: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict, position: int = 1) -> "Milestone":
        """Build a milestone from generator or cache JSON.

        ``position`` is 1-based and only used for missing ids/titles.
        List fields are capped and non-string entries dropped.
        """
        data = data if isinstance(data, dict) else {}
        hint = data.get("chapterHint")
        return cls(
            id=str(data.get("id") or "").strip() or f"m-{position}",
            title=str(data.get("title") or "").strip() or f"Milestone {position}",
            description=str(data.get("description") or "").strip(),
            must_be_scene=bool(data.get("mustBeScene", False)),
            chapter_hint=str(hint) if hint else None,
            keywords=_string_list(data.get("keywords"), MAX_KEYWORDS),
            key_facts=_string_list(data.get("keyFacts"), MAX_KEY_FACTS),
            source_urls=_string_list(data.get("sourceUrls"), MAX_SOURCE_URLS),
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "mustBeScene": self.must_be_scene,
            "keywords": list(self.keywords),
            "keyFacts": list(self.key_facts),
            "sourceUrls": list(self.source_urls),
        }
        if self.chapter_hint:
            data["chapterHint"] = self.chapter_hint
        return data


@dataclass
class DiscoveredMilestones:
    """Milestones for one work, as cached on disk."""
    work_title: str
    author: str
    milestones: list[Milestone] = field(default_factory=list)
    generated_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    @classmethod
    def from_dict(cls, data: dict) -> "DiscoveredMilestones":
        raw = data.get("milestones") or []
        return cls(
            work_title=str(data.get("workTitle") or ""),
            author=str(data.get("author") or ""),
            milestones=[Milestone.from_dict(m, i) for i, m in enumerate(raw, start=1)],
            generated_at=str(data.get("generatedAt") or ""),
        )

    def to_dict(self) -> dict:
        return {
            "workTitle": self.work_title,
            "author": self.author,
            "milestones": [m.to_dict() for m in self.milestones],
            "generatedAt": self.generated_at,
        }
