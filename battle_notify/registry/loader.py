"""
Descriptor decoding and rule construction.

Raw descriptors are sniffed by shape once, at load time, and decoded into
one of the tagged descriptor models:

    abnormalities present      -> AbnormalRuleDescriptor
    type == "reset"            -> ResetRuleDescriptor
    skills or items present    -> CooldownRuleDescriptor

``RuleBuilder.build`` then switches on the descriptor's ``kind``.
"""

from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from battle_notify.conditions.factory import ConditionFactory, ConditionParams
from battle_notify.errors import ConfigurationError
from battle_notify.models.engine import EngineConfig
from battle_notify.models.rules import (
    AbnormalRuleDescriptor,
    CooldownRuleDescriptor,
    ResetRuleDescriptor,
    RuleDescriptor,
)
from battle_notify.rules.events import AbnormalRule, CooldownRule, ResetRule, Rule
from battle_notify.stores.protocols import (
    AbnormalStore,
    CooldownStore,
    EntityStore,
    NotificationSink,
)
from battle_notify.targets.enumerator import TargetEnumerators, cooldown_targets


def decode_descriptor(raw: Any) -> RuleDescriptor:
    """Decode a raw descriptor into its tagged model."""
    if isinstance(raw, (AbnormalRuleDescriptor, CooldownRuleDescriptor, ResetRuleDescriptor)):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Rule descriptor must be a mapping, got {type(raw).__name__}", raw
        )

    if raw.get("abnormalities") is not None:
        model = AbnormalRuleDescriptor
    elif str(raw.get("type") or "").lower() == "reset":
        model = ResetRuleDescriptor
    elif raw.get("skills") is not None or raw.get("items") is not None:
        model = CooldownRuleDescriptor
    else:
        raise ConfigurationError(
            "Unrecognized rule descriptor: expected 'abnormalities', "
            "type 'reset', or 'skills'/'items'",
            raw,
        )

    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {model.__name__}: {e}", raw) from e


class RuleBuilder:
    """Instantiates rules from decoded descriptors."""

    def __init__(
        self,
        config: EngineConfig,
        conditions: ConditionFactory,
        targets: TargetEnumerators,
        entities: EntityStore,
        abnormals: AbnormalStore,
        cooldowns: CooldownStore,
        sink: NotificationSink,
    ):
        self.config = config
        self.conditions = conditions
        self.targets = targets
        self.entities = entities
        self.abnormals = abnormals
        self.cooldowns = cooldowns
        self.sink = sink

    def build(self, raw: Any, name: Optional[str] = None) -> Rule:
        descriptor = decode_descriptor(raw)
        name = name or f"{descriptor.kind}:{descriptor.type}"

        if descriptor.kind == "abnormal":
            return self._build_abnormal(descriptor, name)
        if descriptor.kind == "cooldown":
            return self._build_cooldown(descriptor, name)
        if descriptor.kind == "reset":
            return self._build_reset(descriptor, name)
        raise ConfigurationError(f"Unhandled rule kind '{descriptor.kind}'", raw)

    def _params(
        self,
        time_remaining: Optional[list],
        rewarn_timeout: Optional[float],
        required_stacks: Optional[int] = None,
    ) -> ConditionParams:
        if time_remaining is None:
            time_remaining = self.config.default_time_remaining
        if rewarn_timeout is None:
            rewarn_timeout = self.config.default_rewarn_timeout_seconds
        if required_stacks is None:
            required_stacks = self.config.default_required_stacks
        return ConditionParams(
            times_to_match=frozenset(time_remaining),
            rewarn_timeout_ms=int(rewarn_timeout * 1000),
            required_stacks=required_stacks,
        )

    def _build_abnormal(self, descriptor: AbnormalRuleDescriptor, name: str) -> AbnormalRule:
        kind = descriptor.type.lower()
        params = self._params(
            descriptor.time_remaining,
            descriptor.rewarn_timeout,
            descriptor.required_stacks,
        )
        return AbnormalRule(
            name=name,
            condition=self.conditions.abnormal(kind, params),
            targets=self.targets.get(descriptor.target),
            abnormalities=descriptor.abnormalities,
            payload=descriptor.message,
            entities=self.entities,
            abnormals=self.abnormals,
            sink=self.sink,
            match_all="missing" in kind,
        )

    def _build_cooldown(self, descriptor: CooldownRuleDescriptor, name: str) -> CooldownRule:
        params = self._params(descriptor.time_remaining, descriptor.rewarn_timeout)
        return CooldownRule(
            name=name,
            condition=self.conditions.cooldown(descriptor.type, params),
            targets=cooldown_targets(self.cooldowns, descriptor.skills, descriptor.items),
            payload=descriptor.message,
            sink=self.sink,
            skills=descriptor.skills,
            items=descriptor.items,
        )

    def _build_reset(self, descriptor: ResetRuleDescriptor, name: str) -> ResetRule:
        return ResetRule(
            name=name,
            skills=descriptor.skills,
            payload=descriptor.message,
            cooldowns=self.cooldowns,
            sink=self.sink,
            group_divisor=self.config.skill_group_divisor,
        )
