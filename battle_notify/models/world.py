"""Roster snapshots: who the monitored subject is and who surrounds it."""

from typing import Optional

from pydantic import BaseModel


class Subject(BaseModel):
    """The monitored player."""

    id: str
    job: str = "common"                     # class name, selects rule scope
    combat: bool = False


class Boss(BaseModel):
    """The boss currently engaged by the subject."""

    id: str
    enraged: bool = False


class Entity(BaseModel):
    """Any entity a status-effect rule can target."""

    id: str
    name: Optional[str] = None
    dead: bool = False
