"""Engine configuration."""

from typing import List

from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    """Configuration for the notification engine."""

    tick_interval_seconds: float = Field(gt=0, default=0.5)
    default_time_remaining: List[int] = [6]
    default_rewarn_timeout_seconds: float = Field(ge=0, default=5)
    default_required_stacks: int = Field(ge=0, default=1)
    common_scope: str = "common"
    skill_group_divisor: int = Field(gt=0, default=10000)
