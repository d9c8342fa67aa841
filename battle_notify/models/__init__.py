"""battle-notify data models."""

from battle_notify.models.engine import EngineConfig
from battle_notify.models.observation import AbnormalInfo, CooldownInfo, ResetInfo
from battle_notify.models.rules import (
    AbnormalRuleDescriptor,
    CooldownRuleDescriptor,
    ResetRuleDescriptor,
    RuleDescriptor,
)
from battle_notify.models.world import Boss, Entity, Subject

__all__ = [
    "AbnormalInfo",
    "AbnormalRuleDescriptor",
    "Boss",
    "CooldownInfo",
    "CooldownRuleDescriptor",
    "EngineConfig",
    "Entity",
    "ResetInfo",
    "ResetRuleDescriptor",
    "RuleDescriptor",
    "Subject",
]
