"""Sources Agent: a page of reading material for a topic."""

import logging
import re
from typing import Optional

from agents.base_agent import BaseAgent
from config.settings import Settings
from models.concept import TopicContext
from tools.agent_sdk_client import AgentSDKClient
from tools.concept_page import count_source_items, prune_source_items
from tools.text_utils import unwrap_code_fence

logger = logging.getLogger(__name__)

MIN_SOURCES = 5
MAX_SOURCES = 12

# English and Polish
_ASKS_CONFIRMATION_RE = re.compile(
    r"please confirm|\bshall i\b|\bshould i\b|would you like|do you want|"
    r"potwierdź|potwierdz|czy mam|po potwierdzeniu|czy chcesz",
    re.IGNORECASE,
)


def clamp_source_count(count: Optional[int]) -> int:
    return min(max(8 if count is None else count, MIN_SOURCES), MAX_SOURCES)


def sources_title(topic_title: str) -> str:
    return f"Sources for: {topic_title}"


class SourcesAgent(BaseAgent):
    """Asks for a fixed-size list of ``- [title](url)`` items.

    A reply that asks for confirmation instead of answering is retried once
    with a stricter preamble; extra items are cut off.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("sources")

    async def _generate(self, prompt: str) -> str:
        return await self.llm.generate_markdown(
            prompt,
            system_prompt=self._system_prompt(self._template),
            model=self.settings.llm_model_study,
        )

    async def fetch(self, topic: TopicContext, concept_titles: list[str], count: Optional[int] = None) -> str:
        count = clamp_source_count(count)
        concept_line = f"; Concepts={' | '.join(concept_titles)}" if concept_titles else ""
        user_prompt = self._render_section(
            self._template, "Instructions",
            topic_line=topic.prompt_line(), concept_line=concept_line,
            topic_title=topic.title, count=count, language=self.language,
        )

        logger.info("Collecting %d sources for %r...", count, topic.title)
        markdown = await self._generate(user_prompt)
        if _ASKS_CONFIRMATION_RE.search(markdown):
            logger.warning("Sources reply asked for confirmation; retrying with a stricter prompt")
            hardened = (
                f"NO QUESTIONS AND NO REQUESTS FOR CONFIRMATION. Return exactly {count} items. "
                f"Start with the H1 line.\n\n{user_prompt}"
            )
            markdown = await self._generate(hardened)

        markdown = unwrap_code_fence(markdown).strip()
        if not re.match(r"#\s+", markdown):
            markdown = f"# {sources_title(topic.title)}\n\n{markdown}"
        if count_source_items(markdown) > count:
            markdown = prune_source_items(markdown, count)
        logger.info("Sources page ready: %d items", count_source_items(markdown))
        return markdown.strip() + "\n"
