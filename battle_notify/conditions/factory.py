"""
Condition Factory: builds the predicates rules evaluate every tick.

A condition is a small immutable object with a single ``__call__``:

    condition(observation, last_match) -> match value | None

The match value is a non-zero epoch-millisecond number. Rules compare it to
the value stored for the target on the previous match, so a condition that
keeps returning the same value never notifies twice.

Two families exist, selected by a case-insensitive kind name:
  abnormal: added, removed, addedorrefreshed, refreshed, expiring,
            missing, missingduringcombat
  cooldown: expiring, expiringduringcombat, expiringduringenrage,
            ready, readyduringcombat, readyduringenrage
"""

import math
import time
from typing import Callable, Dict, FrozenSet, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from battle_notify.errors import ConfigurationError
from battle_notify.models.observation import AbnormalInfo, CooldownInfo

_EMPTY_ABNORMAL = AbnormalInfo()
_EMPTY_COOLDOWN = CooldownInfo()


def now_ms() -> int:
    return int(time.time() * 1000)


def seconds_remaining(expires: int, now: int) -> int:
    """Whole seconds until ``expires``, rounding halves up."""
    return math.floor((expires - now) / 1000 + 0.5)


class ConditionParams(BaseModel):
    """Construction parameters shared by every condition kind."""

    model_config = ConfigDict(frozen=True)

    times_to_match: FrozenSet[int] = frozenset({6})
    rewarn_timeout_ms: int = Field(ge=0, default=5000)
    required_stacks: int = Field(ge=0, default=1)


class ConditionContext:
    """Live accessors conditions may consult: clock, combat and enrage."""

    def __init__(
        self,
        clock: Optional[Callable[[], int]] = None,
        combat: Optional[Callable[[], bool]] = None,
        enrage: Optional[Callable[[], bool]] = None,
    ):
        self.clock = clock or now_ms
        self.combat = combat or (lambda: False)
        self.enrage = enrage or (lambda: False)


class Condition:
    """Base class for all predicates."""

    kind = ""

    def __init__(self, params: ConditionParams, context: ConditionContext):
        self._params = params
        self._context = context

    @property
    def params(self) -> ConditionParams:
        return self._params

    def __call__(self, info, last_match: int = 0) -> Optional[int]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._params!r})"

    def _expiring_now(self, expires: int, now: int) -> bool:
        return seconds_remaining(expires, now) in self._params.times_to_match

    def _rewarn_elapsed(self, now: int, last_match: int) -> Optional[int]:
        if now > (last_match or 0) + self._params.rewarn_timeout_ms:
            return now
        return None


# --- Abnormal conditions ---

class Added(Condition):
    kind = "added"

    def __call__(self, info: Optional[AbnormalInfo], last_match: int = 0) -> Optional[int]:
        return (info or _EMPTY_ABNORMAL).added


class Removed(Condition):
    kind = "removed"

    def __call__(self, info: Optional[AbnormalInfo], last_match: int = 0) -> Optional[int]:
        return (info or _EMPTY_ABNORMAL).removed


class AddedOrRefreshed(Condition):
    kind = "addedorrefreshed"

    def __call__(self, info: Optional[AbnormalInfo], last_match: int = 0) -> Optional[int]:
        info = info or _EMPTY_ABNORMAL
        if info.stacks > self._params.required_stacks:
            return info.refreshed or info.added
        return None


class Refreshed(Condition):
    kind = "refreshed"

    def __call__(self, info: Optional[AbnormalInfo], last_match: int = 0) -> Optional[int]:
        info = info or _EMPTY_ABNORMAL
        if info.stacks > self._params.required_stacks:
            return info.refreshed
        return None


class AbnormalExpiring(Condition):
    """Matches while the effect has one of the configured seconds left.

    The match value shifts every tick, so each qualifying second is a new
    match.
    """

    kind = "expiring"

    def __call__(self, info: Optional[AbnormalInfo], last_match: int = 0) -> Optional[int]:
        info = info or _EMPTY_ABNORMAL
        now = self._context.clock()
        expires = info.expires or 0
        applied = info.refreshed or info.added
        if applied and self._expiring_now(expires, now):
            return applied + (expires - now)
        return None


class Missing(Condition):
    kind = "missing"

    def __call__(self, info: Optional[AbnormalInfo], last_match: int = 0) -> Optional[int]:
        info = info or _EMPTY_ABNORMAL
        if info.added or info.refreshed:
            return None
        return self._rewarn_elapsed(self._context.clock(), last_match)


class MissingDuringCombat(Missing):
    kind = "missingduringcombat"

    def __call__(self, info: Optional[AbnormalInfo], last_match: int = 0) -> Optional[int]:
        if not self._context.combat():
            return None
        return super().__call__(info, last_match)


# --- Cooldown conditions ---

class CooldownExpiring(Condition):
    kind = "expiring"

    def __call__(self, info: Optional[CooldownInfo], last_match: int = 0) -> Optional[int]:
        info = info or _EMPTY_COOLDOWN
        now = self._context.clock()
        if self._expiring_now(info.expires, now):
            return info.expires - (info.expires - now)
        return None


class ExpiringDuringCombat(CooldownExpiring):
    kind = "expiringduringcombat"

    def __call__(self, info: Optional[CooldownInfo], last_match: int = 0) -> Optional[int]:
        if not self._context.combat():
            return None
        return super().__call__(info, last_match)


class ExpiringDuringEnrage(ExpiringDuringCombat):
    kind = "expiringduringenrage"

    def __call__(self, info: Optional[CooldownInfo], last_match: int = 0) -> Optional[int]:
        if not self._context.enrage():
            return None
        return super().__call__(info, last_match)


class Ready(Condition):
    kind = "ready"

    def __call__(self, info: Optional[CooldownInfo], last_match: int = 0) -> Optional[int]:
        info = info or _EMPTY_COOLDOWN
        now = self._context.clock()
        if now > info.expires:
            return self._rewarn_elapsed(now, last_match)
        return None


class ReadyDuringCombat(Ready):
    kind = "readyduringcombat"

    def __call__(self, info: Optional[CooldownInfo], last_match: int = 0) -> Optional[int]:
        if not self._context.combat():
            return None
        return super().__call__(info, last_match)


class ReadyDuringEnrage(ReadyDuringCombat):
    kind = "readyduringenrage"

    def __call__(self, info: Optional[CooldownInfo], last_match: int = 0) -> Optional[int]:
        if not self._context.enrage():
            return None
        return super().__call__(info, last_match)


def _by_kind(*classes: Type[Condition]) -> Dict[str, Type[Condition]]:
    return {cls.kind: cls for cls in classes}


ABNORMAL_CONDITIONS = _by_kind(
    Added, Removed, AddedOrRefreshed, Refreshed,
    AbnormalExpiring, Missing, MissingDuringCombat,
)

COOLDOWN_CONDITIONS = _by_kind(
    CooldownExpiring, ExpiringDuringCombat, ExpiringDuringEnrage,
    Ready, ReadyDuringCombat, ReadyDuringEnrage,
)


class ConditionFactory:
    """Resolves a kind name to a parameterized condition."""

    def __init__(self, context: Optional[ConditionContext] = None):
        self.context = context or ConditionContext()

    def abnormal(self, kind: str, params: Optional[ConditionParams] = None) -> Condition:
        return self._build(ABNORMAL_CONDITIONS, "abnormal", kind, params)

    def cooldown(self, kind: str, params: Optional[ConditionParams] = None) -> Condition:
        return self._build(COOLDOWN_CONDITIONS, "cooldown", kind, params)

    def _build(
        self,
        registry: Dict[str, Type[Condition]],
        family: str,
        kind: str,
        params: Optional[ConditionParams],
    ) -> Condition:
        cls = registry.get(str(kind).lower())
        if cls is None:
            raise ConfigurationError(
                f"Unknown {family} condition '{kind}'. "
                f"Expected one of: {', '.join(sorted(registry))}"
            )
        return cls(params or ConditionParams(), self.context)
