"""
Late-bound runtime configuration.

Static settings come from the environment (``nurseai.config``). A handful of
keys that operators change without a redeploy live in the ``app_config``
table and are resolved during startup, then refreshed periodically or on
demand. Readers always see a complete immutable snapshot; a refresh swaps the
snapshot in one assignment.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional

from nurseai.config import settings
from nurseai.repositories.app_config import AppConfigRepository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuntimeConfig:
    embedding_model: str
    embedding_dimensions: int
    search_threshold: float
    insight_generation_enabled: bool

    @classmethod
    def defaults(cls) -> "RuntimeConfig":
        return cls(
            embedding_model=settings.DEFAULT_EMBEDDING_MODEL,
            embedding_dimensions=settings.DEFAULT_EMBEDDING_DIMENSIONS,
            search_threshold=settings.DEFAULT_SEARCH_THRESHOLD,
            insight_generation_enabled=True,
        )

    @classmethod
    def from_mapping(
        cls,
        values: Dict[str, str],
        base: Optional["RuntimeConfig"] = None
    ) -> "RuntimeConfig":
        """
        Build a snapshot from raw key/value strings.

        Missing or unparseable values keep the value from ``base``.
        """
        config = base or cls.defaults()
        changes = {}

        model = values.get(RuntimeConfigService.KEY_EMBEDDING_MODEL)
        if model and model.strip():
            changes["embedding_model"] = model.strip()

        dimensions = values.get(RuntimeConfigService.KEY_EMBEDDING_DIMENSIONS)
        if dimensions is not None:
            try:
                parsed = int(dimensions)
                if parsed <= 0:
                    raise ValueError("dimensions must be positive")
                changes["embedding_dimensions"] = parsed
            except ValueError:
                logger.warning(f"Ignoring invalid embedding dimensions value: {dimensions!r}")

        threshold = values.get(RuntimeConfigService.KEY_SEARCH_THRESHOLD)
        if threshold is not None:
            try:
                parsed_threshold = float(threshold)
                if not 0.0 <= parsed_threshold <= 1.0:
                    raise ValueError("threshold must be within [0, 1]")
                changes["search_threshold"] = parsed_threshold
            except ValueError:
                logger.warning(f"Ignoring invalid search threshold value: {threshold!r}")

        enabled = values.get(RuntimeConfigService.KEY_INSIGHTS_ENABLED)
        if enabled is not None:
            changes["insight_generation_enabled"] = enabled.strip().lower() == "true"

        return replace(config, **changes)


class RuntimeConfigService:
    """
    Holds the current ``RuntimeConfig`` snapshot.

    Until ``load()`` succeeds the snapshot holds environment defaults and
    ``is_ready`` is False.
    """

    KEY_EMBEDDING_MODEL = "ai_embedding_model"
    KEY_EMBEDDING_DIMENSIONS = "ai_embedding_dimensions"
    KEY_SEARCH_THRESHOLD = "ai_semantic_search_threshold"
    KEY_INSIGHTS_ENABLED = "ai_insight_generation_enabled"

    def __init__(
        self,
        repository: Optional[AppConfigRepository] = None,
        refresh_interval: Optional[int] = None,
        initial: Optional[RuntimeConfig] = None
    ):
        self._repository = repository
        self.refresh_interval = refresh_interval or settings.CONFIG_REFRESH_INTERVAL_SECONDS
        self._current = initial or RuntimeConfig.defaults()
        self._ready = initial is not None
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def static(cls, config: Optional[RuntimeConfig] = None) -> "RuntimeConfigService":
        """A ready service that never touches the database (tests, scripts)."""
        return cls(initial=config or RuntimeConfig.defaults())

    @property
    def repository(self) -> AppConfigRepository:
        if self._repository is None:
            self._repository = AppConfigRepository()
        return self._repository

    @property
    def current(self) -> RuntimeConfig:
        return self._current

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def load(self) -> RuntimeConfig:
        """Resolve every late-bound key. Errors propagate so startup can fail loudly."""
        values = await self.repository.get_all()
        self._current = RuntimeConfig.from_mapping(values, base=RuntimeConfig.defaults())
        self._ready = True
        logger.info(
            f"Runtime config loaded: model={self._current.embedding_model}, "
            f"dimensions={self._current.embedding_dimensions}, "
            f"threshold={self._current.search_threshold}, "
            f"insights_enabled={self._current.insight_generation_enabled}"
        )
        return self._current

    async def refresh(self) -> RuntimeConfig:
        """Reload from the store, keeping the previous snapshot on failure."""
        try:
            return await self.load()
        except Exception as e:
            logger.error(f"Runtime config refresh failed, keeping previous values: {e}")
            return self._current

    def apply(self, values: Dict[str, str]) -> RuntimeConfig:
        """Overlay raw key/values on the current snapshot (on-demand reload hook)."""
        self._current = RuntimeConfig.from_mapping(values, base=self._current)
        self._ready = True
        return self._current

    async def start_auto_refresh(self):
        if self._task is None:
            self._task = asyncio.create_task(self._refresh_loop())

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _refresh_loop(self):
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh()


# Process-wide configuration holder
runtime_config = RuntimeConfigService()
