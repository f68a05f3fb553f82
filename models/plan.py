"""Narrative plan data models."""

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Optional

from models.enums import ChapterType, NarrativeVoice, PointOfView, coerce_enum


@dataclass
class ChapterPlan:
    """One planned chapter of the abridged retelling."""
    index: int
    title: str
    description: str = ""
    type: ChapterType = ChapterType.SCENE
    pov: PointOfView = PointOfView.THIRD_PERSON
    pov_character: Optional[str] = None
    tone: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict, position: int = 1) -> "ChapterPlan":
        data = data if isinstance(data, dict) else {}
        try:
            index = int(data.get("index") or position)
        except (TypeError, ValueError):
            index = position
        return cls(
            index=index,
            title=str(data.get("title") or "").strip() or f"Chapter {position}",
            description=str(data.get("description") or "").strip(),
            type=coerce_enum(ChapterType, data.get("type"), ChapterType.SCENE),
            pov=coerce_enum(PointOfView, data.get("pov"), PointOfView.THIRD_PERSON),
            pov_character=(str(data["povCharacter"]).strip() or None) if data.get("povCharacter") else None,
            tone=(str(data["tone"]).strip() or None) if data.get("tone") else None,
        )

    def to_dict(self) -> dict:
        data = {
            "index": self.index,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "pov": self.pov.value,
        }
        if self.pov_character:
            data["povCharacter"] = self.pov_character
        if self.tone:
            data["tone"] = self.tone
        return data


@dataclass
class NarrativePlan:
    """Global narrative decisions plus the ordered chapter list.

    Chapter indexes are 1-based and dense; chapter 1 is always a
    third-person scene.
    """
    narrative_voice: NarrativeVoice = NarrativeVoice.PURE_SCENES
    narrative_voice_reasoning: str = ""
    style_inspiration: str = ""
    style_reasoning: str = ""
    overall_tone: str = ""
    spiritual_core: str = ""
    interpretive_axes: list[str] = field(default_factory=list)
    chapters: list[ChapterPlan] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "NarrativePlan":
        axes = data.get("interpretiveAxes") or []
        return cls(
            narrative_voice=coerce_enum(
                NarrativeVoice, data.get("narrativeVoice"), NarrativeVoice.PURE_SCENES
            ),
            narrative_voice_reasoning=str(data.get("narrativeVoiceReasoning") or ""),
            style_inspiration=str(data.get("styleInspiration") or ""),
            style_reasoning=str(data.get("styleReasoning") or ""),
            overall_tone=str(data.get("overallTone") or ""),
            spiritual_core=str(data.get("spiritualCore") or ""),
            interpretive_axes=[str(a) for a in axes if str(a).strip()] if isinstance(axes, list) else [],
            chapters=[
                ChapterPlan.from_dict(ch, i)
                for i, ch in enumerate(data.get("chapters") or [], start=1)
            ],
        )

    def to_dict(self) -> dict:
        return {
            "narrativeVoice": self.narrative_voice.value,
            "narrativeVoiceReasoning": self.narrative_voice_reasoning,
            "styleInspiration": self.style_inspiration,
            "styleReasoning": self.style_reasoning,
            "overallTone": self.overall_tone,
            "spiritualCore": self.spiritual_core,
            "interpretiveAxes": list(self.interpretive_axes),
            "chapters": [ch.to_dict() for ch in self.chapters],
        }

    def reindexed(self) -> "NarrativePlan":
        """Copy with chapter indexes renumbered 1..N in list order."""
        chapters = [replace(ch, index=i) for i, ch in enumerate(self.chapters, start=1)]
        return replace(self, chapters=chapters, interpretive_axes=list(self.interpretive_axes))

    def type_histogram(self) -> dict[str, int]:
        return dict(Counter(ch.type.value for ch in self.chapters))

    def chapter(self, index: int) -> Optional[ChapterPlan]:
        for ch in self.chapters:
            if ch.index == index:
                return ch
        return None
