"""
Notification sink: renders a rule's payload against the matched context.

A payload is either a plain template string or a mapping with a
``message`` template plus presentation keys (channel, color, ...).
Presentation defaults set through ``set_defaults`` fill the keys a
mapping payload leaves out.

Template fields: ``{name}`` / ``{entity}`` (target entity), ``{abnormal}``,
``{stacks}``, ``{seconds}`` (seconds until expiry), ``{skill}``, ``{item}``,
``{group}``. Unknown fields are left untouched.
"""

import logging
import math
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from battle_notify.models.observation import AbnormalInfo, CooldownInfo, ResetInfo
from battle_notify.models.world import Entity

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """A delivered notification."""

    kind: str                               # "effect" | "cooldown" | "reset"
    text: str
    style: Dict[str, Any] = {}
    context: Dict[str, Any] = {}
    delivered_at: datetime


class _Fields(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class LogNotificationSink:
    """Renders notifications, logs them and keeps a bounded history."""

    def __init__(
        self,
        clock: Optional[Callable[[], int]] = None,
        history_limit: int = 100,
    ):
        self.clock = clock or _now_ms
        self.history_limit = history_limit
        self._defaults: Dict[str, Any] = {}
        self._history: List[Notification] = []

    @property
    def history(self) -> List[Notification]:
        return list(self._history)

    @property
    def defaults(self) -> Dict[str, Any]:
        return dict(self._defaults)

    def set_defaults(self, defaults: dict) -> None:
        """Replace presentation defaults (from the styling descriptor)."""
        self._defaults = dict(defaults or {})

    def notify_effect(
        self, payload: Any, entity: Entity, info: Optional[AbnormalInfo]
    ) -> Notification:
        context: Dict[str, Any] = {"entity": entity.id, "name": entity.name or entity.id}
        if info is not None:
            context.update(
                abnormal=info.id,
                stacks=info.stacks,
                seconds=self._seconds_until(info.expires),
            )
        return self._deliver("effect", payload, context)

    def notify_cooldown(self, payload: Any, info: CooldownInfo) -> Notification:
        context = {
            "skill": info.skill,
            "item": info.item,
            "seconds": self._seconds_until(info.expires),
        }
        return self._deliver("cooldown", payload, context)

    def notify_reset(self, payload: Any, info: ResetInfo) -> Notification:
        return self._deliver("reset", payload, {"skill": info.skill, "group": info.group})

    def _seconds_until(self, expires: Optional[int]) -> Optional[int]:
        if not expires:
            return None
        return max(0, math.floor((expires - self.clock()) / 1000 + 0.5))

    def _deliver(self, kind: str, payload: Any, context: Dict[str, Any]) -> Notification:
        if isinstance(payload, dict):
            style = {**self._defaults, **payload}
            template = style.pop("message", "")
        else:
            style = dict(self._defaults)
            style.pop("message", None)
            template = "" if payload is None else str(payload)

        notification = Notification(
            kind=kind,
            text=str(template).format_map(_Fields(context)),
            style=style,
            context=context,
            delivered_at=datetime.utcnow(),
        )
        self._history.append(notification)
        if self.history_limit > 0:
            del self._history[:-self.history_limit]
        else:
            self._history.clear()
        logger.debug("Notify [%s]: %s", kind, notification.text)
        return notification
