"""Observations read from the external stores on every tick.

All timestamps are epoch milliseconds.
"""

from typing import Optional

from pydantic import BaseModel, Field


class AbnormalInfo(BaseModel):
    """Most recent observation of one status effect on one entity."""

    id: Optional[int] = None
    stacks: int = Field(ge=0, default=0)
    added: Optional[int] = None
    refreshed: Optional[int] = None
    expires: Optional[int] = None
    removed: Optional[int] = None


class CooldownInfo(BaseModel):
    """Cooldown of a single skill or item."""

    skill: Optional[int] = None
    item: Optional[int] = None
    expires: int = 0

    @property
    def key(self) -> str:
        """Identifier used for dedup bookkeeping."""
        return str(self.item if self.item else self.skill)


class ResetInfo(BaseModel):
    """Payload delivered when a group of skill cooldowns resets."""

    skill: int
    group: int
