"""Chapter-count heuristic and milestone coverage for narrative plans."""

import logging
import math
from dataclasses import replace
from typing import Optional

from models.enums import ChapterType, PointOfView
from models.milestone import Milestone
from models.plan import ChapterPlan, NarrativePlan

logger = logging.getLogger(__name__)

MIN_CHAPTERS = 8
MAX_CHAPTERS = 18
MINUTES_PER_TEN_CHAPTERS = 5.0
MAX_MILESTONE_BONUS = 6
# far above any reading time that stays below max_chapters
MAX_TARGET_MINUTES = 1000.0


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def suggest_chapter_count(
    target_minutes: Optional[float],
    milestones_count: int,
    desired_chapters: Optional[int] = None,
    min_chapters: int = MIN_CHAPTERS,
    max_chapters: int = MAX_CHAPTERS,
) -> int:
    """Chapter count adapted to reading time and milestone density.

    About ten chapters for five minutes of reading, plus one per two
    milestones (at most six). Reading time is capped at MAX_TARGET_MINUTES
    before rounding and NaN counts as the default, so any input lands in
    range. An explicit ``desired_chapters`` replaces the proposal but is
    still clamped to [min_chapters, max_chapters].
    """
    if target_minutes is None or math.isnan(target_minutes):
        minutes = 5.0
    else:
        minutes = min(max(float(target_minutes), 0.0), MAX_TARGET_MINUTES)
    base = _round_half_up(minutes / MINUTES_PER_TEN_CHAPTERS * 10)
    bonus = min(MAX_MILESTONE_BONUS, math.ceil(max(0, milestones_count) / 2))
    proposed = desired_chapters if desired_chapters is not None else base + bonus
    return max(min_chapters, min(max_chapters, proposed))


def _is_covered(milestone: Milestone, chapters: list[ChapterPlan]) -> bool:
    needles = [milestone.id, milestone.title, milestone.description, *milestone.keywords]
    needles = [str(n).lower() for n in needles if n]
    for ch in chapters:
        haystack = f"{ch.title} {ch.description}".lower()
        if any(n in haystack for n in needles):
            return True
    return False


def ensure_plan_has_milestones(plan: NarrativePlan, milestones: list[Milestone]) -> NarrativePlan:
    """Return a plan in which every milestone is matched by some chapter.

    A milestone is matched when its id, title or any keyword occurs
    (case-insensitively) in a chapter's title or description. Unmatched
    milestones are appended as third-person scene chapters and the result is
    renumbered 1..N. The input plan is not modified.
    """
    if not milestones:
        return plan

    chapters = list(plan.chapters)
    added = []
    for milestone in milestones:
        if _is_covered(milestone, chapters):
            continue
        chapters.append(ChapterPlan(
            index=len(chapters) + 1,
            title=milestone.title,
            description=milestone.description or milestone.title,
            type=ChapterType.SCENE,
            pov=PointOfView.THIRD_PERSON,
        ))
        added.append(milestone.id)

    if not added:
        return plan

    logger.info("Appended %d milestone chapter(s): %s", len(added), ", ".join(added))
    return replace(plan, chapters=chapters).reindexed()
