"""Scheduling-harness entry point for one collector kind."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from result import Err, Ok, Result

from qualisync.models.collectors import Collector
from qualisync.services.snapshots import now_ms

if TYPE_CHECKING:
    from qualisync.config import Config
    from qualisync.data.protocols import CollectorStoreProtocol, ProgressCallback
    from qualisync.models.collectors import CollectorKind
    from qualisync.models.cycles import CycleResult
    from qualisync.services.dispatcher import ServerDispatcher


class CollectorTask:
    """Runs collection cycles for one kind, never two at once."""

    def __init__(
        self,
        kind: CollectorKind,
        config: Config,
        collectors: CollectorStoreProtocol,
        dispatcher: ServerDispatcher,
    ) -> None:
        self.kind = kind
        self._config = config
        self._collectors = collectors
        self._dispatcher = dispatcher
        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(f"{__name__}.{kind.collector_name}")

    @property
    def cron(self) -> str:
        return self._config.cron

    async def get_collector(self) -> Collector:
        """Register (or load) this kind's collector, populated from the config snapshot."""
        collector_id = await self._collectors.register(self.kind.collector_name, self.kind)
        return Collector(
            id=collector_id,
            name=self.kind.collector_name,
            kind=self.kind,
            servers=self._config.servers,
        )

    async def collect(
        self,
        collector: Collector,
        progress_callback: ProgressCallback | None = None,
    ) -> CycleResult:
        """Run one cycle; a second call waits for the running one to finish."""
        async with self._lock:
            result = await self._dispatcher.collect(collector, progress_callback)
            await self._collectors.mark_executed(collector.id, now_ms())
            return result

    async def run_once(
        self, progress_callback: ProgressCallback | None = None
    ) -> Result[CycleResult, str]:
        """One scheduled tick. Failures are logged; the next tick starts from stored state."""
        try:
            collector = await self.get_collector()
            return Ok(await self.collect(collector, progress_callback))
        except Exception as exc:
            self._logger.exception("Collection cycle failed")
            return Err(f"{self.kind.collector_name} collection failed: {exc}")
