"""
In-memory stores: the engine's view of game state.

Updated by: the host (packet hooks, test fixtures)
Queried by: condition predicates, target enumerators, rule instances

Production hosts back these with live protocol state; the engine only
depends on the protocols in ``battle_notify.stores.protocols``.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from battle_notify.models.observation import AbnormalInfo, CooldownInfo, ResetInfo
from battle_notify.models.world import Boss, Entity, Subject
from battle_notify.stores.protocols import ResetCallback

logger = logging.getLogger(__name__)


class MemoryEntityStore:
    """Tracks the subject, the current boss and every known entity."""

    def __init__(self, subject: Optional[Subject] = None):
        self._subject = subject or Subject(id="0")
        self._boss: Optional[Boss] = None
        self._entities: Dict[str, Entity] = {}
        self.upsert(Entity(id=self._subject.id))

    def subject(self) -> Subject:
        return self._subject

    def set_subject(self, subject: Subject) -> None:
        """Replace the subject (login, class change)."""
        self._subject = subject
        if subject.id not in self._entities:
            self.upsert(Entity(id=subject.id))

    def set_combat(self, combat: bool) -> None:
        self._subject = self._subject.model_copy(update={"combat": combat})

    def boss(self) -> Optional[Boss]:
        return self._boss

    def set_boss(self, boss: Optional[Boss]) -> None:
        self._boss = boss
        if boss is not None and boss.id not in self._entities:
            self.upsert(Entity(id=boss.id))

    def get(self, entity_id: str) -> Optional[Entity]:
        return self._entities.get(str(entity_id))

    def upsert(self, entity: Entity) -> None:
        self._entities[entity.id] = entity

    def remove(self, entity_id: str) -> bool:
        return self._entities.pop(str(entity_id), None) is not None


class MemoryPartyStore:
    def __init__(self, members: Iterable[str] = ()):
        self._members: List[str] = [str(m) for m in members]

    def members(self) -> List[str]:
        return list(self._members)

    def set_members(self, members: Iterable[str]) -> None:
        self._members = [str(m) for m in members]


class MemoryAbnormalStore:
    """Latest observation per (entity, abnormality)."""

    def __init__(self):
        self._observations: Dict[Tuple[str, int], AbnormalInfo] = {}

    def get(self, entity_id: str, abnormal_id: int) -> Optional[AbnormalInfo]:
        return self._observations.get((str(entity_id), abnormal_id))

    def put(self, entity_id: str, info: AbnormalInfo) -> None:
        if info.id is None:
            raise ValueError("AbnormalInfo.id is required to store an observation")
        self._observations[(str(entity_id), info.id)] = info

    def discard(self, entity_id: str, abnormal_id: int) -> None:
        self._observations.pop((str(entity_id), abnormal_id), None)


class MemoryCooldownStore:
    """Cooldowns per skill/item plus reset hooks keyed by skill group."""

    def __init__(self, skill_group_divisor: int = 10000):
        self.skill_group_divisor = skill_group_divisor
        self._skills: Dict[int, int] = {}
        self._items: Dict[int, int] = {}
        self._hooks: List[Tuple[Set[int], ResetCallback]] = []

    def skill(self, skill_id: int) -> CooldownInfo:
        return CooldownInfo(skill=skill_id, expires=self._skills.get(skill_id, 0))

    def item(self, item_id: int) -> CooldownInfo:
        return CooldownInfo(item=item_id, expires=self._items.get(item_id, 0))

    def set_skill(self, skill_id: int, expires: int) -> None:
        self._skills[skill_id] = expires

    def set_item(self, item_id: int, expires: int) -> None:
        self._items[item_id] = expires

    def on_reset(self, groups: Set[int], callback: ResetCallback) -> None:
        self._hooks.append((set(groups), callback))

    def clear_reset_hooks(self) -> None:
        self._hooks.clear()

    @property
    def hook_count(self) -> int:
        return len(self._hooks)

    def reset(self, skill_id: int) -> int:
        """Reset a skill's cooldown and fire hooks watching its group.

        Returns the number of hooks invoked.
        """
        self._skills[skill_id] = 0
        group = skill_id // self.skill_group_divisor
        info = ResetInfo(skill=skill_id, group=group)
        fired = 0
        for groups, callback in list(self._hooks):
            if group not in groups:
                continue
            try:
                callback(info)
                fired += 1
            except Exception:
                logger.exception("Reset hook failed for skill %s (group %s)", skill_id, group)
        return fired


class MemoryDescriptorSource:
    """Rule descriptors held in memory, keyed by scope."""

    def __init__(
        self,
        scopes: Optional[Dict[str, Iterable[Any]]] = None,
        styling: Optional[dict] = None,
    ):
        self._scopes: Dict[str, List[Any]] = {
            k: list(v) for k, v in (scopes or {}).items()
        }
        self._styling = styling

    def load(self, scope: str) -> Optional[List[Any]]:
        return self._scopes.get(scope)

    def load_styling(self) -> Optional[dict]:
        return self._styling

    def set_scope(self, scope: str, descriptors: Iterable[Any]) -> None:
        self._scopes[scope] = list(descriptors)

    def set_styling(self, styling: Optional[dict]) -> None:
        self._styling = styling
