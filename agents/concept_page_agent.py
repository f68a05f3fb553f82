"""Concept Page Writer: one short study page per concept of the plan."""

import logging
from typing import Optional

from agents.base_agent import BaseAgent
from config.exceptions import LLMError
from config.settings import Settings
from models.concept import TopicContext
from tools.agent_sdk_client import AgentSDKClient
from tools.concept_page import (
    StyleVariant,
    derive_keywords,
    ensure_formatted_concept,
    fallback_concept_markdown,
    pick_variant,
)

logger = logging.getLogger(__name__)

AVOID_PHRASES = ["In this topic", "It is worth noting", "It should be emphasized", "In conclusion"]


def variant_prompt_values(variant: StyleVariant) -> dict[str, str]:
    """Template fragments switched on by the variant's flags."""
    hints = [f"Style: {variant.style_hint}"]
    extras = []
    if variant.bold_heading:
        extras.append("**<mini heading, 2-4 words>**\n\n")
    if variant.italic_fragment:
        hints.append("Put one short sentence in italics.")
        extras.append("*<one short italic sentence>*\n\n")
    if variant.pull_quote:
        extras.append("> <pull quote: the sharpest sentence of the page>\n\n")
    closing = ""
    if variant.lead_at_end:
        hints.append("Close the Content section with a second one-sentence lead.")
        closing = "> <closing lead: 1 sentence>\n\n"
    return {
        "variant_hints": " ".join(hints),
        "variant_extras": "".join(extras),
        "variant_closing": closing,
    }


class ConceptPageWriter(BaseAgent):
    """Expands a concept title into a formatted study page.

    Generation failures yield the skeleton page, so one bad concept never
    stops the whole topic.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("concept_page")

    async def expand(self, title: str, topic: TopicContext) -> str:
        variant = pick_variant(title)
        logger.info("Writing concept %r (variant=%s, flags=%s)", title, variant.name, variant.flags() or "-")
        user_prompt = self._render_section(
            self._template, "Instructions",
            title=title, language=self.language,
            topic_line=topic.prompt_line(),
            section_description=topic.section_description or "-",
            avoid_phrases=", ".join(f'"{p}"' for p in AVOID_PHRASES),
            keywords=", ".join(derive_keywords(topic)) or "-",
            **variant_prompt_values(variant),
        )
        try:
            markdown = await self.llm.generate_markdown(
                user_prompt,
                system_prompt=self._system_prompt(self._template),
                model=self.settings.llm_model_writing,
            )
        except LLMError as e:
            logger.error("Concept %r failed, using skeleton page: %s", title, e)
            markdown = fallback_concept_markdown(title, topic)
        return ensure_formatted_concept(markdown, title, topic.title, variant)
