"""
BattleNotify: wires stores, conditions, registry and scheduler together.

Host signals map onto the lifecycle:
  login            -> enable()  (enable + reload)
  return to lobby  -> disable()
  unload           -> dispose()
"""

import asyncio
import logging
from typing import Callable, Optional

from battle_notify.conditions.factory import ConditionContext, ConditionFactory, now_ms
from battle_notify.models.engine import EngineConfig
from battle_notify.notify.sink import LogNotificationSink
from battle_notify.registry.controller import RuleRegistry
from battle_notify.registry.loader import RuleBuilder
from battle_notify.scheduler.loop import Scheduler
from battle_notify.stores.memory import (
    MemoryAbnormalStore,
    MemoryCooldownStore,
    MemoryDescriptorSource,
    MemoryEntityStore,
    MemoryPartyStore,
)
from battle_notify.stores.protocols import (
    AbnormalStore,
    CooldownStore,
    DescriptorSource,
    EntityStore,
    NotificationSink,
    PartyStore,
)
from battle_notify.targets.enumerator import TargetEnumerators

logger = logging.getLogger(__name__)


class BattleNotify:
    """The notification engine as seen by its host."""

    def __init__(
        self,
        entities: Optional[EntityStore] = None,
        party: Optional[PartyStore] = None,
        abnormals: Optional[AbnormalStore] = None,
        cooldowns: Optional[CooldownStore] = None,
        sink: Optional[NotificationSink] = None,
        source: Optional[DescriptorSource] = None,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.config = config or EngineConfig()
        self.clock = clock or now_ms
        self.entities = entities or MemoryEntityStore()
        self.party = party or MemoryPartyStore()
        self.abnormals = abnormals or MemoryAbnormalStore()
        self.cooldowns = cooldowns or MemoryCooldownStore(self.config.skill_group_divisor)
        self.sink = sink or LogNotificationSink(clock=self.clock)
        self.source = source or MemoryDescriptorSource()

        self.conditions = ConditionFactory(ConditionContext(
            clock=self.clock,
            combat=self._combat,
            enrage=self._enrage,
        ))
        self.targets = TargetEnumerators(self.entities, self.party)
        self.registry = RuleRegistry(
            builder=RuleBuilder(
                config=self.config,
                conditions=self.conditions,
                targets=self.targets,
                entities=self.entities,
                abnormals=self.abnormals,
                cooldowns=self.cooldowns,
                sink=self.sink,
            ),
            source=self.source,
            entities=self.entities,
            cooldowns=self.cooldowns,
            sink=self.sink,
            config=self.config,
        )
        self.scheduler = Scheduler(self.registry, self.config)
        self._task: Optional[asyncio.Task] = None
        self._disposed = False

    def _combat(self) -> bool:
        return bool(self.entities.subject().combat)

    def _enrage(self) -> bool:
        boss = self.entities.boss()
        return bool(boss and boss.enraged)

    @property
    def enabled(self) -> bool:
        return self.registry.enabled

    @property
    def disposed(self) -> bool:
        return self._disposed

    def enable(self) -> None:
        self.registry.enable()

    def disable(self) -> None:
        self.registry.disable()

    def login(self) -> None:
        """Host signal: the subject entered the world (or changed class)."""
        self.enable()

    def return_to_lobby(self) -> None:
        """Host signal: the subject left the world."""
        self.disable()

    def reload(self) -> int:
        return len(self.registry.reload())

    def tick(self) -> int:
        return self.scheduler.tick()

    def configure(self, config: EngineConfig) -> None:
        """Replace the configuration everywhere it is held.

        Reset rules group skills when they are built, so a change of
        ``skill_group_divisor`` reloads an enabled engine right away.
        """
        regroup = config.skill_group_divisor != self.config.skill_group_divisor
        self.config = config
        self.registry.config = config
        self.registry.builder.config = config
        self.scheduler.config = config
        if isinstance(self.cooldowns, MemoryCooldownStore):
            self.cooldowns.skill_group_divisor = config.skill_group_divisor
        logger.info("Engine configuration replaced")
        if regroup and self.enabled:
            self.registry.reload()

    def start(self) -> asyncio.Task:
        """Schedule the tick loop on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.scheduler.run_async())
        return self._task

    def dispose(self) -> None:
        """Stop ticking and release the rule set."""
        self.scheduler.stop()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.registry.disable()
        self.registry.clear()
        self._disposed = True
        logger.info("Engine disposed")

    def status(self) -> dict:
        return {
            "enabled": self.enabled,
            "scheduler": self.scheduler.status,
            "ticks": self.scheduler.ticks,
            "rules": len(self.registry.rules),
            "skipped": len(self.registry.skipped),
            "generation": self.registry.generation,
            "disposed": self._disposed,
        }
