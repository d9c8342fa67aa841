"""
Scheduler: the engine's heartbeat.

Every tick re-evaluates all active rules. A rule that raises is logged
and the tick moves on to the next rule; nothing escapes ``tick()``.
"""

import asyncio
import logging
from typing import Optional

from battle_notify.models.engine import EngineConfig
from battle_notify.registry.controller import RuleRegistry

logger = logging.getLogger(__name__)


class Scheduler:
    """Fixed-interval evaluator of the registry's current rule set."""

    def __init__(self, registry: RuleRegistry, config: Optional[EngineConfig] = None):
        self.registry = registry
        self.config = config or EngineConfig()
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None
        self._ticks = 0

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    @property
    def ticks(self) -> int:
        """Ticks that evaluated rules (disabled ticks are not counted)."""
        return self._ticks

    def tick(self) -> int:
        """Run one evaluation pass. Returns the number of rules checked."""
        if not self.registry.enabled:
            return 0

        rules = self.registry.rules
        for rule in rules:
            try:
                rule.check()
            except Exception:
                logger.exception("Rule %s raised during tick", rule.name)
        self._ticks += 1
        return len(rules)

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Tick every ``tick_interval_seconds`` until stopped."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()
        self._stop_event = stop_event

        try:
            while not stop_event.is_set():
                self.tick()
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.config.tick_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
            self._stop_event = None
