"""Tests for the chapter-count heuristic and milestone coverage."""

import pytest


class TestSuggestChapterCount:
    def test_default_five_minutes_without_milestones(self):
        from tools.plan_merger import suggest_chapter_count
        assert suggest_chapter_count(5, 0) == 10

    def test_none_minutes_means_five(self):
        from tools.plan_merger import suggest_chapter_count
        assert suggest_chapter_count(None, 0) == 10

    def test_milestone_bonus(self):
        from tools.plan_merger import suggest_chapter_count
        assert suggest_chapter_count(5, 3) == 12  # ceil(3/2) = 2

    def test_bonus_capped_at_six(self):
        from tools.plan_merger import suggest_chapter_count
        assert suggest_chapter_count(5, 40) == 16

    def test_clamped_to_bounds(self):
        from tools.plan_merger import suggest_chapter_count
        assert suggest_chapter_count(1, 0) == 8
        assert suggest_chapter_count(20, 10) == 18

    def test_extreme_minutes_hit_the_bounds(self):
        from tools.plan_merger import suggest_chapter_count
        assert suggest_chapter_count(float("inf"), 0) == 18
        assert suggest_chapter_count(1e308, 0) == 18
        assert suggest_chapter_count(0, 0) == 8

    def test_rounds_half_up(self):
        from tools.plan_merger import suggest_chapter_count
        # 6.25 / 5 * 10 = 12.5 -> 13
        assert suggest_chapter_count(6.25, 0) == 13

    def test_desired_chapters_override(self):
        from tools.plan_merger import suggest_chapter_count
        assert suggest_chapter_count(5, 10, desired_chapters=9) == 9

    def test_desired_chapters_still_clamped(self):
        from tools.plan_merger import suggest_chapter_count
        assert suggest_chapter_count(5, 0, desired_chapters=3) == 8
        assert suggest_chapter_count(5, 0, desired_chapters=40) == 18

    @pytest.mark.parametrize("minutes,count", [
        (0, 0), (0.5, 0), (5, 3), (9, 12), (30, 100),
        (float("inf"), 0), (1e308, 0), (-1e308, 4), (float("nan"), 2),
    ])
    def test_always_within_bounds(self, minutes, count):
        from tools.plan_merger import suggest_chapter_count
        assert 8 <= suggest_chapter_count(minutes, count) <= 18


class TestEnsurePlanHasMilestones:
    def test_missing_milestone_appended_as_scene(self, sample_plan, sample_milestones):
        from models.enums import ChapterType, PointOfView
        from tools.plan_merger import ensure_plan_has_milestones
        merged = ensure_plan_has_milestones(sample_plan, sample_milestones)
        assert len(merged.chapters) == 4
        added = merged.chapters[-1]
        assert added.title == "The Horse Race"
        assert added.description == "Vronsky falls at the race"
        assert added.type == ChapterType.SCENE
        assert added.pov == PointOfView.THIRD_PERSON
        assert [ch.index for ch in merged.chapters] == [1, 2, 3, 4]

    def test_keyword_match_is_case_insensitive(self, sample_plan):
        from models.milestone import Milestone
        from tools.plan_merger import ensure_plan_has_milestones
        milestone = Milestone(id="x-1", title="Unrelated", keywords=["STATION"])
        assert ensure_plan_has_milestones(sample_plan, [milestone]) is sample_plan

    def test_input_plan_not_mutated(self, sample_plan, sample_milestones):
        from tools.plan_merger import ensure_plan_has_milestones
        ensure_plan_has_milestones(sample_plan, sample_milestones)
        assert len(sample_plan.chapters) == 3

    def test_idempotent(self, sample_plan, sample_milestones):
        from tools.plan_merger import ensure_plan_has_milestones
        once = ensure_plan_has_milestones(sample_plan, sample_milestones)
        twice = ensure_plan_has_milestones(once, sample_milestones)
        assert twice.to_dict() == once.to_dict()

    def test_description_falls_back_to_title(self, sample_plan):
        from models.milestone import Milestone
        from tools.plan_merger import ensure_plan_has_milestones
        merged = ensure_plan_has_milestones(sample_plan, [Milestone(id="duel", title="The Duel")])
        assert merged.chapters[-1].description == "The Duel"

    def test_appended_chapter_covers_later_duplicates(self, sample_plan):
        from models.milestone import Milestone
        from tools.plan_merger import ensure_plan_has_milestones
        milestones = [Milestone(id="duel", title="The Duel"), Milestone(id="duel-2", title="Duel", keywords=["duel"])]
        merged = ensure_plan_has_milestones(sample_plan, milestones)
        assert len(merged.chapters) == 4

    def test_no_milestones_returns_same_plan(self, sample_plan):
        from tools.plan_merger import ensure_plan_has_milestones
        assert ensure_plan_has_milestones(sample_plan, []) is sample_plan

    def test_blank_title_milestone_merged_once(self, sample_plan):
        from models.milestone import Milestone
        from tools.plan_merger import ensure_plan_has_milestones
        milestone = Milestone.from_dict({"id": "duel", "title": "   ", "description": "Two men fight at dawn"}, 3)
        once = ensure_plan_has_milestones(sample_plan, [milestone])
        twice = ensure_plan_has_milestones(once, [milestone])
        assert len(once.chapters) == 4
        assert once.chapters[-1].title == "Milestone 3"
        assert twice is once

    def test_description_alone_marks_milestone_covered(self, sample_plan):
        from dataclasses import replace
        from models.milestone import Milestone
        from tools.plan_merger import ensure_plan_has_milestones
        chapters = list(sample_plan.chapters)
        chapters[0] = replace(chapters[0], description="Two men fight at dawn")
        plan = replace(sample_plan, chapters=chapters)
        milestone = Milestone(id="m-9", title="Pistols", description="Two men fight at dawn")
        assert ensure_plan_has_milestones(plan, [milestone]) is plan

