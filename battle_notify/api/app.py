"""
battle-notify control API: FastAPI endpoints.

Lets a host or operator:
- Inspect engine status and the active rule set
- Enable / disable the engine (login / return to lobby)
- Reload rules and force a tick
- Read and replace the engine configuration
"""

from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from battle_notify.engine.core import BattleNotify
from battle_notify.models.engine import EngineConfig


# --- Request/Response Models ---

class TickResponse(BaseModel):
    checked: int
    enabled: bool


class ReloadResponse(BaseModel):
    rules: int
    skipped: list
    generation: int


# --- Application Factory ---

def create_app(engine: Optional[BattleNotify] = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="battle-notify API",
        description="Rule-driven combat notification engine",
        version="0.1.0",
    )

    bn = engine or BattleNotify()
    app.state.engine = bn

    def _require_live() -> None:
        if bn.disposed:
            raise HTTPException(409, "Engine has been disposed")

    @app.get("/engine/status")
    def engine_status():
        """Current lifecycle and scheduler status."""
        return bn.status()

    @app.post("/engine/enable")
    def enable_engine():
        """Enable notifications and reload rules (login)."""
        _require_live()
        bn.enable()
        return bn.status()

    @app.post("/engine/disable")
    def disable_engine():
        """Stop notifying (return to lobby)."""
        _require_live()
        bn.disable()
        return bn.status()

    @app.post("/engine/reload")
    def reload_rules():
        """Rebuild the rule set from the descriptor source."""
        _require_live()
        count = bn.reload()
        return ReloadResponse(
            rules=count,
            skipped=bn.registry.skipped,
            generation=bn.registry.generation,
        )

    @app.post("/engine/tick")
    def trigger_tick():
        """Force one evaluation pass."""
        _require_live()
        return TickResponse(checked=bn.tick(), enabled=bn.enabled)

    @app.get("/engine/rules")
    def list_rules():
        """Active rule instances."""
        return [rule.describe() for rule in bn.registry.rules]

    @app.get("/engine/notifications")
    def list_notifications(limit: int = 50):
        """Recently delivered notifications, if the sink keeps a history."""
        history = getattr(bn.sink, "history", None)
        if history is None:
            raise HTTPException(404, "Notification sink keeps no history")
        if limit <= 0:
            return []
        return [n.model_dump(mode="json") for n in history[-limit:]]

    @app.get("/engine/config")
    def get_config():
        """Current engine configuration."""
        return bn.config.model_dump()

    @app.put("/engine/config")
    def update_config(config: EngineConfig):
        """Replace the engine configuration. Rule defaults apply on the next reload."""
        _require_live()
        bn.configure(config)
        return config.model_dump()

    return app


# Default application instance
app = create_app()
