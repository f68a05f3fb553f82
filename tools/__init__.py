"""Tools package — Agent SDK client, JSON parsing, text and file helpers."""

from tools.agent_sdk_client import AgentSDKClient
from tools.llm_client import parse_json_response
from tools.plan_merger import ensure_plan_has_milestones, suggest_chapter_count
from tools.study_section_template import LinkStrategy, render_study_section
from tools.text_utils import (
    count_words,
    extract_key_events,
    sanitize_chapter_title,
    slugify,
)

__all__ = [
    "AgentSDKClient",
    "parse_json_response",
    "ensure_plan_has_milestones",
    "suggest_chapter_count",
    "LinkStrategy",
    "render_study_section",
    "count_words",
    "extract_key_events",
    "sanitize_chapter_title",
    "slugify",
]
