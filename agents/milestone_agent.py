"""Milestone Discoverer: canonical plot events of a work, cached per title and author."""

import json
import logging
from pathlib import Path
from typing import Optional

from agents.base_agent import BaseAgent
from config.exceptions import LLMResponseParseError
from config.settings import Settings
from models.milestone import DiscoveredMilestones, Milestone
from tools.agent_sdk_client import AgentSDKClient
from tools.llm_client import ensure_dict
from tools.text_utils import slugify

logger = logging.getLogger(__name__)


def milestone_cache_path(cache_dir: str | Path, work_title: str, author: str) -> Path:
    return Path(cache_dir) / f"{slugify(work_title)}-{slugify(author)}.json"


class MilestoneDiscoverer(BaseAgent):
    """Asks the generator for 6-10 canonical milestones of a work.

    Results are cached as JSON under ``settings.milestone_cache_dir``; a
    non-empty cached entry is reused unless ``force`` is set.
    """

    def __init__(
        self,
        llm_client: Optional[AgentSDKClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(llm_client, settings)
        self._template = self._load_prompt("milestones")

    def cache_path(self, work_title: str, author: str) -> Path:
        return milestone_cache_path(self.settings.milestone_cache_dir, work_title, author)

    def _read_cache(self, path: Path) -> Optional[DiscoveredMilestones]:
        if not path.exists():
            return None
        try:
            cached = DiscoveredMilestones.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, AttributeError, TypeError) as e:
            logger.warning("Ignoring unreadable milestone cache %s: %s", path, e)
            return None
        return cached if cached.milestones else None

    def _write_cache(self, path: Path, result: DiscoveredMilestones):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(result.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")

    async def discover(self, work_title: str, author: str, force: bool = False) -> DiscoveredMilestones:
        """Return the milestones of a work, from cache or from the generator.

        A response without parseable JSON yields an empty (still cached)
        result. Other generation failures propagate.
        """
        path = self.cache_path(work_title, author)
        if not force:
            cached = self._read_cache(path)
            if cached is not None:
                logger.info("Loaded %d milestones from cache: %s", len(cached.milestones), path.name)
                return cached

        user_prompt = self._render_section(
            self._template, "Instructions",
            work_title=work_title, author=author, language=self.language,
        )

        logger.info("Discovering milestones for %r (%s)...", work_title, author)
        try:
            data = await self.llm.generate_structured(
                user_prompt,
                system_prompt=self._system_prompt(self._template),
                model=self.settings.llm_model_planning,
            )
            raw = ensure_dict(data, list_key="milestones").get("milestones") or []
        except LLMResponseParseError as e:
            logger.warning("Milestone response could not be parsed, continuing without milestones: %s", e)
            raw = []

        if not isinstance(raw, list):
            raw = []
        result = DiscoveredMilestones(
            work_title=work_title,
            author=author,
            milestones=[Milestone.from_dict(m, i) for i, m in enumerate(raw, start=1)],
        )
        self._write_cache(path, result)
        logger.info("Discovered %d milestones, cached at %s", len(result.milestones), path)
        return result
