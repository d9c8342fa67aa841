"""Tests for the FastAPI control endpoints."""

import pytest
from fastapi.testclient import TestClient

from battle_notify.api.app import create_app
from battle_notify.engine.core import BattleNotify
from battle_notify.models.world import Subject
from battle_notify.stores.memory import MemoryDescriptorSource, MemoryEntityStore


@pytest.fixture
def engine():
    return BattleNotify(
        entities=MemoryEntityStore(Subject(id="1", job="warrior")),
        source=MemoryDescriptorSource({
            "warrior": [
                {"type": "missing", "abnormalities": 100, "message": "{name} lost buff"},
                {"type": "bogus", "skills": 1},
            ],
            "common": [{"type": "ready", "skills": 500, "message": "ready"}],
        }),
    )


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


class TestLifecycleEndpoints:
    def test_status_starts_disabled(self, client):
        response = client.get("/engine/status")
        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is False
        assert data["rules"] == 0

    def test_enable_loads_rules(self, client):
        response = client.post("/engine/enable")
        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is True
        assert data["rules"] == 2
        assert data["skipped"] == 1

    def test_disable(self, client):
        client.post("/engine/enable")
        response = client.post("/engine/disable")
        assert response.json()["enabled"] is False

    def test_reload_reports_skipped(self, client):
        response = client.post("/engine/reload")
        data = response.json()
        assert data["rules"] == 2
        assert data["generation"] == 1
        assert data["skipped"][0]["scope"] == "warrior"


class TestEvaluationEndpoints:
    def test_tick_while_disabled(self, client):
        response = client.post("/engine/tick")
        assert response.json() == {"checked": 0, "enabled": False}

    def test_tick_delivers_notifications(self, client):
        client.post("/engine/enable")
        response = client.post("/engine/tick")
        assert response.json()["checked"] == 2

        notifications = client.get("/engine/notifications").json()
        texts = sorted(n["text"] for n in notifications)
        assert texts == ["1 lost buff", "ready"]

    def test_list_rules(self, client):
        client.post("/engine/enable")
        rules = client.get("/engine/rules").json()
        assert [r["kind"] for r in rules] == ["abnormal", "cooldown"]
        assert rules[0]["match_all"] is True


class TestConfigEndpoints:
    def test_get_config(self, client):
        data = client.get("/engine/config").json()
        assert data["tick_interval_seconds"] == 0.5
        assert data["common_scope"] == "common"

    def test_update_config_applies_on_reload(self, client, engine):
        response = client.put("/engine/config", json={"default_rewarn_timeout_seconds": 30})
        assert response.status_code == 200

        client.post("/engine/reload")
        assert engine.registry.rules[0].condition.params.rewarn_timeout_ms == 30000

    def test_invalid_config_rejected(self, client):
        response = client.put("/engine/config", json={"tick_interval_seconds": 0})
        assert response.status_code == 422

    def test_disposed_engine_rejects_commands(self, client, engine):
        engine.dispose()
        assert client.post("/engine/enable").status_code == 409
        assert client.get("/engine/status").json()["disposed"] is True


class TestSkillGroupDivisor:
    def setup_method(self):
        self.engine = BattleNotify(
            entities=MemoryEntityStore(Subject(id="1", job="warrior")),
            source=MemoryDescriptorSource({
                "common": [{"type": "reset", "skills": 12345, "message": "reset {skill}"}],
            }),
        )
        self.client = TestClient(create_app(self.engine))

    def test_divisor_change_before_enable(self):
        self.client.put("/engine/config", json={"skill_group_divisor": 1000})
        self.client.post("/engine/enable")

        assert self.engine.registry.rules[0].groups == {12}
        assert self.engine.cooldowns.reset(12001) == 1
        assert self.engine.sink.history[-1].text == "reset 12001"

    def test_divisor_change_regroups_enabled_engine(self):
        self.client.post("/engine/enable")
        assert self.engine.cooldowns.reset(12001) == 1

        self.client.put("/engine/config", json={"skill_group_divisor": 1000})

        assert self.engine.registry.rules[0].groups == {12}
        assert self.engine.cooldowns.hook_count == 1
        assert self.engine.cooldowns.reset(12999) == 1
        assert self.engine.cooldowns.reset(13000) == 0


class TestNotificationHistory:
    def test_zero_limit_returns_nothing(self, client):
        client.post("/engine/enable")
        client.post("/engine/tick")
        assert len(client.get("/engine/notifications").json()) == 2
        assert client.get("/engine/notifications?limit=0").json() == []
