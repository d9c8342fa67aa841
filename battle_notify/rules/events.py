"""
Rule instances: conditions bound to targets and dedup state.

Behavioral Contract:
- A rule notifies for a target only when its condition yields a match value
  different from the one stored for that target.
- ``last_matches`` is mutated only by the rule's own ``check()``.
- A failure while checking one target is logged and does not stop the
  remaining targets.
"""

import logging
from typing import Any, Dict, List, Optional, Set

from battle_notify.conditions.factory import Condition
from battle_notify.errors import EvaluationError
from battle_notify.models.observation import AbnormalInfo, CooldownInfo, ResetInfo
from battle_notify.stores.protocols import (
    AbnormalStore,
    CooldownStore,
    EntityStore,
    NotificationSink,
)
from battle_notify.targets.enumerator import CooldownEnumerator, TargetEnumerator

logger = logging.getLogger(__name__)


class Rule:
    """Uniform contract every rule kind satisfies."""

    kind = ""

    def __init__(self, name: str, payload: Any):
        self.name = name
        self.payload = payload
        self._last_matches: Dict[str, int] = {}

    @property
    def last_matches(self) -> Dict[str, int]:
        return dict(self._last_matches)

    def check(self) -> None:
        raise NotImplementedError

    def describe(self) -> dict:
        return {"name": self.name, "kind": self.kind, "payload": self.payload}

    def _report(self, target: str, exc: Exception) -> None:
        error = EvaluationError(self.name, target, exc)
        logger.error(
            "%s.check: %s\nevent: %s",
            type(self).__name__,
            error,
            self.describe(),
            exc_info=exc,
        )


class AbnormalRule(Rule):
    """Watches a set of abnormalities on every enumerated target."""

    kind = "abnormal"

    def __init__(
        self,
        name: str,
        condition: Condition,
        targets: TargetEnumerator,
        abnormalities: List[int],
        payload: Any,
        entities: EntityStore,
        abnormals: AbnormalStore,
        sink: NotificationSink,
        match_all: bool = False,
    ):
        super().__init__(name, payload)
        self.condition = condition
        self.targets = targets
        # dict keeps configured order while dropping duplicates
        self.abnormalities = list(dict.fromkeys(abnormalities))
        self.match_all = match_all
        self.entities = entities
        self.abnormals = abnormals
        self.sink = sink

    def describe(self) -> dict:
        return {
            **super().describe(),
            "condition": self.condition.kind,
            "params": self.condition.params.model_dump(mode="json"),
            "abnormalities": self.abnormalities,
            "match_all": self.match_all,
            "last_matches": self.last_matches,
        }

    def check(self) -> None:
        for entity_id in self.targets():
            try:
                self._check_target(entity_id)
            except Exception as exc:
                self._report(str(entity_id), exc)

    def _check_target(self, entity_id: Optional[str]) -> None:
        if not entity_id:
            return
        entity = self.entities.get(entity_id)
        if entity is None or entity.dead:
            return

        key = str(entity_id)
        last_match = self._last_matches.setdefault(key, 0)

        results: Set[bool] = set()
        info: Optional[AbnormalInfo] = None
        current_match = None

        for abnormal_id in self.abnormalities:
            abnormal_info = self.abnormals.get(key, abnormal_id)
            match = self.condition(abnormal_info, last_match)
            if match and match != last_match:
                current_match = match
                info = abnormal_info
                results.add(True)
            else:
                results.add(False)

        if (self.match_all and False in results) or True not in results:
            return

        self.sink.notify_effect(self.payload, entity, info)
        self._last_matches[key] = current_match
        logger.debug("Rule %s matched %s (match=%s)", self.name, key, current_match)


class CooldownRule(Rule):
    """Watches a fixed list of skill and item cooldowns."""

    kind = "cooldown"

    def __init__(
        self,
        name: str,
        condition: Condition,
        targets: CooldownEnumerator,
        payload: Any,
        sink: NotificationSink,
        skills: Optional[List[int]] = None,
        items: Optional[List[int]] = None,
    ):
        super().__init__(name, payload)
        self.condition = condition
        self.targets = targets
        self.skills = list(skills or [])
        self.items = list(items or [])
        self.sink = sink

    def describe(self) -> dict:
        return {
            **super().describe(),
            "condition": self.condition.kind,
            "params": self.condition.params.model_dump(mode="json"),
            "skills": self.skills,
            "items": self.items,
            "last_matches": self.last_matches,
        }

    def check(self) -> None:
        for info in self.targets():
            try:
                self._check_target(info)
            except Exception as exc:
                self._report(getattr(info, "key", repr(info)), exc)

    def _check_target(self, info: Optional[CooldownInfo]) -> None:
        if info is None:
            return
        key = info.key
        last_match = self._last_matches.setdefault(key, 0)
        match = self.condition(info, last_match)
        if match and match != last_match:
            self.sink.notify_cooldown(self.payload, info)
            self._last_matches[key] = match
            logger.debug("Rule %s matched %s (match=%s)", self.name, key, match)


class ResetRule(Rule):
    """Forwards group-reset events from the cooldown store to the sink."""

    kind = "reset"

    def __init__(
        self,
        name: str,
        skills: List[int],
        payload: Any,
        cooldowns: CooldownStore,
        sink: NotificationSink,
        group_divisor: int = 10000,
    ):
        super().__init__(name, payload)
        self.skills = list(skills)
        self.groups = {skill // group_divisor for skill in self.skills}
        self.sink = sink
        cooldowns.on_reset(set(self.groups), self._on_reset)

    def describe(self) -> dict:
        return {**super().describe(), "skills": self.skills, "groups": sorted(self.groups)}

    def _on_reset(self, info: ResetInfo) -> None:
        self.sink.notify_reset(self.payload, info)

    def check(self) -> None:
        pass
