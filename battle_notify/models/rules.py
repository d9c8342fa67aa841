"""Rule descriptors: the already-parsed form of a configured rule.

Descriptors use the field names of the rule files (``time_remaining``,
``rewarn_timeout``, ``required_stacks``). Unset tuning fields stay ``None``
and are resolved against ``EngineConfig`` when the rule is built.
"""

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


def _to_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


class AbnormalRuleDescriptor(BaseModel):
    """Status-effect rule: watches abnormalities on a set of targets."""

    kind: Literal["abnormal"] = "abnormal"
    type: str
    target: str = "self"
    abnormalities: List[int]
    message: Any = None
    time_remaining: Optional[List[int]] = None
    rewarn_timeout: Optional[float] = Field(ge=0, default=None)   # seconds
    required_stacks: Optional[int] = Field(ge=0, default=None)

    @field_validator("abnormalities", mode="before")
    @classmethod
    def _abnormalities_as_list(cls, value: Any) -> list:
        return _to_list(value)

    @field_validator("time_remaining", mode="before")
    @classmethod
    def _time_remaining_as_list(cls, value: Any) -> Optional[list]:
        return None if value is None else _to_list(value)


class CooldownRuleDescriptor(BaseModel):
    """Cooldown rule: watches a fixed list of skills and items."""

    kind: Literal["cooldown"] = "cooldown"
    type: str
    skills: List[int] = []
    items: List[int] = []
    message: Any = None
    time_remaining: Optional[List[int]] = None
    rewarn_timeout: Optional[float] = Field(ge=0, default=None)

    @field_validator("skills", "items", mode="before")
    @classmethod
    def _ids_as_list(cls, value: Any) -> list:
        return _to_list(value)

    @field_validator("time_remaining", mode="before")
    @classmethod
    def _time_remaining_as_list(cls, value: Any) -> Optional[list]:
        return None if value is None else _to_list(value)


class ResetRuleDescriptor(BaseModel):
    """Reset rule: fires when the cooldown store reports a group reset."""

    kind: Literal["reset"] = "reset"
    type: str = "reset"
    skills: List[int] = []
    message: Any = None

    @field_validator("skills", mode="before")
    @classmethod
    def _skills_as_list(cls, value: Any) -> list:
        return _to_list(value)


RuleDescriptor = Union[AbnormalRuleDescriptor, CooldownRuleDescriptor, ResetRuleDescriptor]
