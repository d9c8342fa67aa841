"""Tests for rule instances: abnormal, cooldown and reset rules."""

import logging

from battle_notify.conditions.factory import (
    ConditionContext,
    ConditionFactory,
    ConditionParams,
)
from battle_notify.models.observation import AbnormalInfo
from battle_notify.models.world import Boss, Entity, Subject
from battle_notify.notify.sink import LogNotificationSink
from battle_notify.rules.events import AbnormalRule, CooldownRule, ResetRule
from battle_notify.stores.memory import (
    MemoryAbnormalStore,
    MemoryCooldownStore,
    MemoryEntityStore,
    MemoryPartyStore,
)
from battle_notify.targets.enumerator import TargetEnumerators, cooldown_targets

NOW = 1_700_000_000_000
BUFF_1 = 100
BUFF_2 = 101


class FakeClock:
    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FlakyAbnormalStore(MemoryAbnormalStore):
    """Raises for one entity to exercise per-target isolation."""

    def __init__(self, broken_entity: str):
        super().__init__()
        self.broken_entity = broken_entity

    def get(self, entity_id, abnormal_id):
        if entity_id == self.broken_entity:
            raise RuntimeError("store exploded")
        return super().get(entity_id, abnormal_id)


class SparseCooldownStore(MemoryCooldownStore):
    """Knows nothing about the skills in `unknown`."""

    def __init__(self, unknown):
        super().__init__()
        self.unknown = set(unknown)

    def skill(self, skill_id):
        if skill_id in self.unknown:
            return None
        return super().skill(skill_id)


class _RuleFixture:
    def setup_method(self):
        self.clock = FakeClock()
        self.entities = MemoryEntityStore(Subject(id="1", job="warrior"))
        for cid in ("2", "3"):
            self.entities.upsert(Entity(id=cid, name=f"member{cid}"))
        self.party = MemoryPartyStore(["1", "2", "3"])
        self.abnormals = MemoryAbnormalStore()
        self.cooldowns = MemoryCooldownStore()
        self.sink = LogNotificationSink(clock=self.clock)
        self.factory = ConditionFactory(ConditionContext(
            clock=self.clock,
            combat=lambda: self.entities.subject().combat,
        ))
        self.targets = TargetEnumerators(self.entities, self.party)

    def _abnormal_rule(self, kind, abnormalities, target="self", **params):
        return AbnormalRule(
            name=f"test:{kind}",
            condition=self.factory.abnormal(kind, ConditionParams(**params)),
            targets=self.targets.get(target),
            abnormalities=abnormalities,
            payload="{name} alert",
            entities=self.entities,
            abnormals=self.abnormals,
            sink=self.sink,
            match_all="missing" in kind.lower(),
        )

    def _cooldown_rule(self, kind, skills=(), items=(), **params):
        return CooldownRule(
            name=f"test:{kind}",
            condition=self.factory.cooldown(kind, ConditionParams(**params)),
            targets=cooldown_targets(self.cooldowns, list(skills), list(items)),
            payload="{skill} {item}",
            sink=self.sink,
            skills=list(skills),
            items=list(items),
        )


class TestAbnormalRule(_RuleFixture):
    def test_added_or_refreshed_fires_once(self):
        """Buff1 with 2 stacks, requiredStacks=1: one notification, no refire."""
        self.abnormals.put("1", AbnormalInfo(id=BUFF_1, stacks=2, added=NOW))
        rule = self._abnormal_rule("addedOrRefreshed", [BUFF_1], required_stacks=1)

        rule.check()
        assert len(self.sink.history) == 1
        assert rule.last_matches["1"] == NOW

        rule.check()
        assert len(self.sink.history) == 1

    def test_refresh_fires_again(self):
        self.abnormals.put("1", AbnormalInfo(id=BUFF_1, stacks=2, added=NOW))
        rule = self._abnormal_rule("addedorrefreshed", [BUFF_1])
        rule.check()

        self.abnormals.put(
            "1", AbnormalInfo(id=BUFF_1, stacks=2, added=NOW, refreshed=NOW + 1000)
        )
        rule.check()
        assert len(self.sink.history) == 2

    def test_match_any_needs_one_effect(self):
        self.abnormals.put("1", AbnormalInfo(id=BUFF_2, stacks=1, added=NOW))
        rule = self._abnormal_rule("added", [BUFF_1, BUFF_2])
        rule.check()
        assert len(self.sink.history) == 1

    def test_match_any_without_match_is_noop(self):
        rule = self._abnormal_rule("added", [BUFF_1, BUFF_2])
        rule.check()
        assert self.sink.history == []
        assert rule.last_matches == {"1": 0}

    def test_match_all_requires_every_effect_missing(self):
        self.abnormals.put("1", AbnormalInfo(id=BUFF_1, stacks=1, added=NOW))
        rule = self._abnormal_rule("missing", [BUFF_1, BUFF_2])
        rule.check()
        assert self.sink.history == []

        self.abnormals.discard("1", BUFF_1)
        rule.check()
        assert len(self.sink.history) == 1

    def test_missing_rewarns_after_timeout(self):
        rule = self._abnormal_rule("missing", [BUFF_1], rewarn_timeout_ms=5000)
        rule.check()
        assert len(self.sink.history) == 1

        self.clock.advance(4000)
        rule.check()
        assert len(self.sink.history) == 1

        self.clock.advance(1000)
        rule.check()
        assert len(self.sink.history) == 1  # exactly 5s is not yet past

        self.clock.advance(1)
        rule.check()
        assert len(self.sink.history) == 2

    def test_expiring_window(self):
        self.abnormals.put(
            "1", AbnormalInfo(id=BUFF_1, stacks=1, added=NOW - 1000, expires=NOW + 7000)
        )
        rule = self._abnormal_rule("expiring", [BUFF_1], times_to_match=frozenset({6}))
        rule.check()
        assert self.sink.history == []

        self.clock.advance(1000)
        rule.check()
        rule.check()
        assert len(self.sink.history) == 1

        self.clock.advance(1000)
        rule.check()
        assert len(self.sink.history) == 1

    def test_party_excludes_self(self):
        rule = self._abnormal_rule("missing", [BUFF_1], target="party")
        rule.check()
        notified = {n.context["entity"] for n in self.sink.history}
        assert notified == {"2", "3"}
        assert self.sink.history[0].text == "member2 alert"

    def test_party_including_self(self):
        rule = self._abnormal_rule("missing", [BUFF_1], target="partyIncludingSelf")
        rule.check()
        assert len(self.sink.history) == 3

    def test_dead_target_skipped(self):
        self.entities.upsert(Entity(id="2", dead=True))
        rule = self._abnormal_rule("missing", [BUFF_1], target="party")
        rule.check()
        assert {n.context["entity"] for n in self.sink.history} == {"3"}

    def test_absent_target_skipped(self):
        self.party.set_members(["1", "9"])
        rule = self._abnormal_rule("missing", [BUFF_1], target="party")
        rule.check()
        assert self.sink.history == []

    def test_no_boss(self):
        rule = self._abnormal_rule("missing", [BUFF_1], target="myboss")
        rule.check()
        assert self.sink.history == []

        self.entities.set_boss(Boss(id="77"))
        rule.check()
        assert self.sink.history[0].context["entity"] == "77"

    def test_target_error_is_isolated(self, caplog):
        self.abnormals = FlakyAbnormalStore(broken_entity="2")
        rule = self._abnormal_rule("missing", [BUFF_1], target="party")

        with caplog.at_level(logging.ERROR, logger="battle_notify.rules.events"):
            rule.check()

        assert {n.context["entity"] for n in self.sink.history} == {"3"}
        assert "error while checking target 2" in caplog.text


class TestCooldownRule(_RuleFixture):
    def test_expiring_fires_at_configured_second(self):
        self.cooldowns.set_skill(500, NOW + 6000)
        rule = self._cooldown_rule("expiring", skills=[500], times_to_match=frozenset({6}))

        rule.check()
        rule.check()
        assert len(self.sink.history) == 1
        assert rule.last_matches == {"500": NOW}

        self.clock.advance(1000)
        rule.check()
        assert len(self.sink.history) == 1

    def test_items_follow_skills(self):
        self.cooldowns.set_skill(500, NOW + 6000)
        self.cooldowns.set_item(9001, NOW + 6000)
        rule = self._cooldown_rule("expiring", skills=[500], items=[9001])
        rule.check()

        texts = [n.text for n in self.sink.history]
        assert texts == ["500 None", "None 9001"]
        assert set(rule.last_matches) == {"500", "9001"}

    def test_ready_rewarn(self):
        rule = self._cooldown_rule("ready", skills=[500], rewarn_timeout_ms=5000)
        rule.check()
        assert len(self.sink.history) == 1

        self.clock.advance(3000)
        rule.check()
        assert len(self.sink.history) == 1

        self.clock.advance(3000)
        rule.check()
        assert len(self.sink.history) == 2

    def test_ready_during_combat(self):
        rule = self._cooldown_rule("readyDuringCombat", skills=[500])
        rule.check()
        assert self.sink.history == []

        self.entities.set_combat(True)
        rule.check()
        assert len(self.sink.history) == 1

    def test_unknown_cooldown_does_not_stop_others(self):
        self.cooldowns = SparseCooldownStore(unknown=[1])
        self.cooldowns.set_skill(2, NOW + 6000)
        rule = self._cooldown_rule("expiring", skills=[1, 2], times_to_match=frozenset({6}))

        rule.check()

        assert [n.text for n in self.sink.history] == ["2 None"]
        assert rule.last_matches == {"2": NOW}


class TestResetRule(_RuleFixture):
    def test_forwards_group_reset(self):
        rule = ResetRule(
            name="test:reset",
            skills=[100005],
            payload="reset {skill}",
            cooldowns=self.cooldowns,
            sink=self.sink,
        )
        assert rule.groups == {10}

        assert self.cooldowns.reset(100001) == 1
        assert self.sink.history[0].text == "reset 100001"
        assert self.sink.history[0].kind == "reset"

        assert self.cooldowns.reset(200001) == 0
        assert len(self.sink.history) == 1

    def test_check_is_noop(self):
        rule = ResetRule(
            name="test:reset",
            skills=[100005],
            payload="reset",
            cooldowns=self.cooldowns,
            sink=self.sink,
        )
        rule.check()
        assert self.sink.history == []
