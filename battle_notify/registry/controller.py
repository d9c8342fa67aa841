"""
Rule Registry: owns the active rule set and the enabled/disabled state.

States:
  DISABLED --enable()--> ENABLED (reload)
  ENABLED --disable()--> DISABLED (rules stay loaded)

Behavioral Contract:
- The active rule set is an immutable tuple, replaced only by ``reload()``.
- ``reload()`` builds the complete new set before swapping it in.
- A descriptor that fails to decode or build is logged and skipped.
"""

import logging
from typing import Any, List, Optional, Tuple

from battle_notify.errors import ConfigurationError
from battle_notify.models.engine import EngineConfig
from battle_notify.registry.loader import RuleBuilder
from battle_notify.rules.events import Rule
from battle_notify.stores.protocols import (
    CooldownStore,
    DescriptorSource,
    EntityStore,
    NotificationSink,
)

logger = logging.getLogger(__name__)


class RuleRegistry:
    """Loads rule descriptors and holds the current rule set."""

    def __init__(
        self,
        builder: RuleBuilder,
        source: DescriptorSource,
        entities: EntityStore,
        cooldowns: CooldownStore,
        sink: NotificationSink,
        config: Optional[EngineConfig] = None,
    ):
        self.builder = builder
        self.source = source
        self.entities = entities
        self.cooldowns = cooldowns
        self.sink = sink
        self.config = config or EngineConfig()

        self._enabled = False
        self._rules: Tuple[Rule, ...] = ()
        self._generation = 0
        self._skipped: List[dict] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def rules(self) -> Tuple[Rule, ...]:
        """Snapshot of the active rule set."""
        return self._rules

    @property
    def generation(self) -> int:
        """Number of completed reloads."""
        return self._generation

    @property
    def skipped(self) -> List[dict]:
        """Descriptors rejected by the last reload."""
        return list(self._skipped)

    def enable(self) -> None:
        """Login: start notifying and (re)load rules for the subject."""
        self._enabled = True
        logger.info("Engine enabled")
        self.reload()

    def disable(self) -> None:
        """Return to lobby: stop notifying. Loaded rules are kept."""
        self._enabled = False
        logger.info("Engine disabled")

    def reload(self) -> Tuple[Rule, ...]:
        """Rebuild the rule set from class-specific then shared descriptors."""
        self.cooldowns.clear_reset_hooks()
        self._skipped = []

        scopes = [self.entities.subject().job, self.config.common_scope]
        rules: List[Rule] = []
        for scope in dict.fromkeys(scopes):
            rules.extend(self._load_scope(scope))

        self._rules = tuple(rules)
        self._generation += 1
        self._load_styling()

        logger.info(
            "Loaded %d rules for scopes %s (%d skipped)",
            len(self._rules), list(dict.fromkeys(scopes)), len(self._skipped),
        )
        return self._rules

    def clear(self) -> None:
        """Release the rule set and every reset hook."""
        self.cooldowns.clear_reset_hooks()
        self._rules = ()

    def _load_scope(self, scope: str) -> List[Rule]:
        try:
            descriptors = self.source.load(scope)
        except Exception:
            logger.exception("Error loading descriptors for scope (%s)", scope)
            return []
        if descriptors is None:
            return []
        if isinstance(descriptors, dict):
            descriptors = [descriptors]

        rules = []
        for index, raw in enumerate(descriptors):
            try:
                rules.append(self.builder.build(raw, name=self._rule_name(scope, index, raw)))
            except ConfigurationError as e:
                self._skip(scope, raw, e)
            except Exception as e:
                logger.exception("Unexpected error building rule %s[%d]", scope, index)
                self._skip(scope, raw, e)
        return rules

    def _skip(self, scope: str, raw: Any, error: Exception) -> None:
        logger.warning(
            "Skipping rule descriptor from (%s)\ndescriptor: %s\n%s",
            scope, raw, error,
        )
        self._skipped.append({"scope": scope, "descriptor": raw, "error": str(error)})

    def _load_styling(self) -> None:
        try:
            styling = self.source.load_styling()
        except Exception:
            logger.exception("Error loading styling defaults")
            return
        if styling:
            self.sink.set_defaults(styling)

    @staticmethod
    def _rule_name(scope: str, index: int, raw: Any) -> str:
        kind = raw.get("type", "?") if isinstance(raw, dict) else getattr(raw, "type", "?")
        return f"{scope}[{index}]:{kind}"
