"""Style Example Agent: one work-specific model scene, cached next to the handbook."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from agents.base_agent import BaseAgent
from config.settings import Settings
from tools.agent_sdk_client import AgentSDKClient
from tools.genre_examples import format_genre_example, get_genre_example
from tools.text_utils import unwrap_code_fence

logger = logging.getLogger(__name__)

_CACHE_KEYS = ("workTitle", "author", "genre", "styleInspiration")


class StyleExampleAgent(BaseAgent):
    """Generates a short example scene with the real characters of the work.

    The cached example is reused only while work, author, genre and style
    inspiration all match.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("style_example")

    async def generate(self, work_title: str, author: str, genre: str, style_inspiration: str) -> str:
        genre_block = format_genre_example(get_genre_example(genre))
        user_prompt = self._render_section(
            self._template, "Instructions",
            work_title=work_title, author=author, style=style_inspiration,
            language=self.language, genre_block=genre_block,
        )
        logger.info("Generating style example for %r (genre=%s)", work_title, genre)
        raw = await self.llm.generate_markdown(
            user_prompt,
            system_prompt=self._system_prompt(self._template),
            model=self.settings.llm_model_writing,
        )
        return unwrap_code_fence(raw)

    async def load_or_generate(
        self,
        cache_path: str | Path,
        work_title: str,
        author: str,
        genre: str,
        style_inspiration: str,
    ) -> str:
        cache_path = Path(cache_path)
        key = {
            "workTitle": work_title,
            "author": author,
            "genre": genre,
            "styleInspiration": style_inspiration,
        }
        if cache_path.exists():
            try:
                cached = json.loads(cache_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("Ignoring unreadable style example cache %s: %s", cache_path, e)
                cached = {}
            if not isinstance(cached, dict):
                cached = {}
            if all(cached.get(k) == key[k] for k in _CACHE_KEYS) and cached.get("example"):
                logger.info("Loaded style example from cache: %s", cache_path.name)
                return cached["example"]
            logger.info("Style example cache is stale, regenerating")

        example = await self.generate(work_title, author, genre, style_inspiration)
        payload = {
            **key,
            "example": example,
            "generatedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info("Saved style example to %s", cache_path.name)
        return example
