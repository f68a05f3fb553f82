"""Base agent: prompt templates, section rendering and injected dependencies."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from config.settings import Settings
from tools.agent_sdk_client import AgentSDKClient

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent.parent / "config" / "prompts"
SECTION_PREFIX = "## "


@lru_cache(maxsize=32)
def read_prompt(name: str) -> str:
    """Prompt template ``config/prompts/{name}.md``, read once per process."""
    path = PROMPTS_DIR / f"{name}.md"
    if not path.is_file():
        raise FileNotFoundError(f"Prompt template not found: {path}")
    return path.read_text(encoding="utf-8")


def split_sections(template: str) -> dict[str, str]:
    """Map each ``## Header`` of a template to its stripped body.

    Text before the first header (the template title) is discarded.
    """
    sections: dict[str, list[str]] = {}
    current: Optional[list[str]] = None
    for line in template.split("\n"):
        if line.startswith(SECTION_PREFIX):
            current = sections.setdefault(line[len(SECTION_PREFIX):].strip(), [])
        elif current is not None:
            current.append(line)
    return {header: "\n".join(body).strip() for header, body in sections.items()}


class BaseAgent:
    """Common base of the generation agents.

    Settings and the generation client are injected; a client is only built
    when none is given. Subclasses load one template and render its sections.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.llm = llm_client or AgentSDKClient(self.settings)

    def _load_prompt(self, template_name: str) -> str:
        """Load a prompt template by name, e.g. ``'chapter_writer'``."""
        return read_prompt(template_name)

    def _extract_section(self, template: str, section_header: str) -> str:
        """Body of the section titled ``section_header`` ('' when absent)."""
        sections = split_sections(template)
        if section_header in sections:
            return sections[section_header]
        for header, body in sections.items():
            if section_header in header:
                return body
        logger.debug("Prompt section %r not found", section_header)
        return ""

    def _render_section(self, template: str, section_header: str, **values) -> str:
        """Extract a section and fill its ``{placeholders}``."""
        return self._extract_section(template, section_header).format(**values)

    def _system_prompt(self, template: str) -> str:
        return self._extract_section(template, "System Prompt")

    @property
    def language(self) -> str:
        return self.settings.handbook_language

    @property
    def chapter_label(self) -> str:
        return self.settings.chapter_label
