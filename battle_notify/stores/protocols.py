"""Interfaces of the collaborators the engine reads from and writes to.

Every call is a synchronous, in-memory read or command. Queries return
``None`` when the store has nothing for the requested identifier.
"""

from typing import Any, Callable, Iterable, Optional, Protocol, Set, runtime_checkable

from battle_notify.models.observation import AbnormalInfo, CooldownInfo, ResetInfo
from battle_notify.models.world import Boss, Entity, Subject


ResetCallback = Callable[[ResetInfo], None]


@runtime_checkable
class EntityStore(Protocol):
    """Subject identity, boss and per-entity liveness."""

    def subject(self) -> Subject: ...

    def boss(self) -> Optional[Boss]: ...

    def get(self, entity_id: str) -> Optional[Entity]: ...


@runtime_checkable
class PartyStore(Protocol):
    def members(self) -> Iterable[str]: ...


@runtime_checkable
class AbnormalStore(Protocol):
    def get(self, entity_id: str, abnormal_id: int) -> Optional[AbnormalInfo]: ...


@runtime_checkable
class CooldownStore(Protocol):
    """Skill/item cooldowns plus reset notifications by skill group."""

    def skill(self, skill_id: int) -> Optional[CooldownInfo]: ...

    def item(self, item_id: int) -> Optional[CooldownInfo]: ...

    def on_reset(self, groups: Set[int], callback: ResetCallback) -> None: ...

    def clear_reset_hooks(self) -> None: ...


@runtime_checkable
class NotificationSink(Protocol):
    """Where notifications go."""

    def notify_effect(self, payload: Any, entity: Entity, info: Optional[AbnormalInfo]) -> None: ...

    def notify_cooldown(self, payload: Any, info: CooldownInfo) -> None: ...

    def notify_reset(self, payload: Any, info: ResetInfo) -> None: ...

    def set_defaults(self, defaults: dict) -> None: ...


@runtime_checkable
class DescriptorSource(Protocol):
    """Supplies raw rule descriptors per scope (a class name or ``common``)."""

    def load(self, scope: str) -> Optional[Iterable[Any]]: ...

    def load_styling(self) -> Optional[dict]: ...
