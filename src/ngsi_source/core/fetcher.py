# ngsi_source/core/fetcher.py
"""
Paginated initial snapshot of the entities matching a source configuration.

A ``FetchTask`` walks ``/v2/entities`` page by page. Pages are emitted as
they arrive, or accumulated and emitted once when buffering is enabled.
Cancellation is cooperative: the request already on the wire completes, but
its result is dropped and no further page is requested.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ngsi_source.contracts.broker import ContextBroker
from ngsi_source.contracts.entity import AttrsFormat, Entity, EntityPage
from ngsi_source.core.ngsi.errors import NGSIError
from ngsi_source.core.preferences import SourceConfig
from ngsi_source.core.tasks import log_task_failure

logger = logging.getLogger(__name__)

EntitiesCallback = Callable[[AttrsFormat, list[Entity]], None]

PAGE_SIZE = 100
MAX_PAGE = 100


class FetchTask:
    """
    One in-flight paginated query sequence.

    Example:
        task = FetchTask(client, config, AttrsFormat.KEY_VALUES, on_entities)
        task.start()
        ...
        task.cancel()   # stops after the in-flight page, nothing else emitted
    """

    def __init__(
        self,
        client: ContextBroker,
        config: SourceConfig,
        attrs_format: AttrsFormat,
        on_entities: EntitiesCallback,
        *,
        page_size: int = PAGE_SIZE,
        max_page: int = MAX_PAGE,
    ) -> None:
        self._client = client
        self._config = config
        self._attrs_format = attrs_format
        self._on_entities = on_entities
        self._page_size = page_size
        self._max_page = max_page

        self._buffer: list[Entity] = []
        self._cancelled = False
        self._task: asyncio.Task | None = None
        self._pages_fetched = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def pages_fetched(self) -> int:
        """Pages whose results were accepted (emitted or buffered)."""
        return self._pages_fetched

    def start(self) -> FetchTask:
        if self._task is not None:
            raise RuntimeError("Fetch task already started")
        self._task = asyncio.create_task(self.run(), name="ngsi-initial-fetch")
        self._task.add_done_callback(log_task_failure)
        return self

    def cancel(self) -> None:
        """Suppress every continuation of this fetch."""
        if not self._cancelled:
            logger.debug("Initial fetch cancelled after %d page(s)", self._pages_fetched)
        self._cancelled = True
        self._buffer = []

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def fetch_page(self, page: int) -> EntityPage:
        return await self._client.list_entities(
            id_pattern=self._config.id_pattern,
            type=self._config.type_filter,
            q=self._config.query,
            limit=self._page_size,
            offset=page * self._page_size,
            key_values=self._attrs_format is AttrsFormat.KEY_VALUES,
        )

    async def run(self) -> None:
        page = 0
        while not self._cancelled:
            try:
                result = await self.fetch_page(page)
            except NGSIError as exc:
                logger.warning("Error retrieving initial values: %s", exc)
                self._buffer = []
                return

            if self._cancelled:
                return

            self._pages_fetched += 1
            if self._config.buffering:
                self._buffer.extend(result.results)
            else:
                self._on_entities(self._attrs_format, result.results)

            has_more = (page + 1) * self._page_size < result.count
            if has_more and page < self._max_page:
                page += 1
                continue

            if has_more:
                logger.debug(
                    "Initial fetch capped at %d page(s), %d entities not retrieved",
                    page + 1,
                    result.count - (page + 1) * self._page_size,
                )

            if self._config.buffering:
                entities, self._buffer = self._buffer, []
                self._on_entities(self._attrs_format, entities)
            return
