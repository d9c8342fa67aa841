"""
Target Enumerator: which ids a rule applies to.

Every enumerator is a zero-argument callable returning a fresh generator,
so party composition and identities are re-read on each ``check()``.
"""

from typing import Callable, Dict, Iterator, List, Optional

from battle_notify.errors import ConfigurationError
from battle_notify.models.observation import CooldownInfo
from battle_notify.stores.protocols import CooldownStore, EntityStore, PartyStore

TargetEnumerator = Callable[[], Iterator[Optional[str]]]
CooldownEnumerator = Callable[[], Iterator[Optional[CooldownInfo]]]


class TargetEnumerators:
    """Named entity enumerators: self, myboss, party, partyincludingself."""

    def __init__(self, entities: EntityStore, party: PartyStore):
        self.entities = entities
        self.party = party
        self._named: Dict[str, TargetEnumerator] = {
            "self": self.own,
            "myboss": self.boss,
            "party": self.party_members,
            "partyincludingself": self.party_including_self,
        }

    @property
    def names(self) -> List[str]:
        return sorted(self._named)

    def get(self, name: str) -> TargetEnumerator:
        """Look up an enumerator by (case-insensitive) target name."""
        enumerator = self._named.get(str(name).lower())
        if enumerator is None:
            raise ConfigurationError(
                f"Unknown target '{name}'. Expected one of: {', '.join(self.names)}"
            )
        return enumerator

    def own(self) -> Iterator[Optional[str]]:
        yield self.entities.subject().id

    def boss(self) -> Iterator[Optional[str]]:
        boss = self.entities.boss()
        yield boss.id if boss else None

    def party_members(self) -> Iterator[str]:
        own_id = self.entities.subject().id
        for member in self.party.members():
            if member != own_id:
                yield member

    def party_including_self(self) -> Iterator[str]:
        for member in self.party.members():
            yield member


def cooldown_targets(
    cooldowns: CooldownStore, skills: List[int], items: List[int]
) -> CooldownEnumerator:
    """Enumerate the cooldowns of fixed skills, then fixed items."""
    skills = list(skills)
    items = list(items)

    def iterate() -> Iterator[Optional[CooldownInfo]]:
        for skill in skills:
            yield cooldowns.skill(skill)
        for item in items:
            yield cooldowns.item(item)

    return iterate
