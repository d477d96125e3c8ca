"""Consensus rules: typed thresholds for promotion, demotion, spam and voting.

Rules are loaded once at startup from a JSON document. Every section and
field is merged explicitly over the built-in defaults; keys the schema does
not know are logged and dropped rather than carried along.

Example document::

    {
        "promotion": {"wild_to_regional": {"min_score": 5, "min_votes": 3}},
        "spam": {"max_items_per_hour": 5}
    }
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from iceberg_daemon.core.errors import ConfigLoadFailure
from iceberg_daemon.core.levels import TrustLevel

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class _Rules(BaseModel):
    model_config = ConfigDict(frozen=True)


class PromotionRule(_Rules):
    """Inclusive thresholds for advancing one tier."""

    min_score: float
    min_votes: float = Field(ge=0)


class DemotionRule(_Rules):
    """Score floor at or below which an item drops one tier."""

    max_score: float


class PromotionTable(_Rules):
    wild_to_regional: PromotionRule = PromotionRule(min_score=5, min_votes=3)
    regional_to_surface: PromotionRule = PromotionRule(min_score=20, min_votes=10)
    surface_to_legacy: PromotionRule = PromotionRule(min_score=100, min_votes=50)


class DemotionTable(_Rules):
    regional_to_wild: DemotionRule = DemotionRule(max_score=-3)
    surface_to_regional: DemotionRule = DemotionRule(max_score=-10)
    legacy_to_surface: DemotionRule = DemotionRule(max_score=-50)


class SpamRules(_Rules):
    """Submission throttle and report thresholds.

    ``report_threshold`` is a ratio of reports to up/down votes;
    ``auto_hide_threshold`` is an absolute number of report records; vote
    weights do not count toward it.
    """

    min_interval_seconds: float = Field(default=60, ge=0)
    max_items_per_hour: int = Field(default=10, ge=1)
    report_threshold: float = Field(default=0.5, ge=0)
    auto_hide_threshold: float = Field(default=10, ge=0)


class VotingRules(_Rules):
    base_weight: float = Field(default=1.0, gt=0)
    reputation_multiplier: float = Field(default=0.1, ge=0)
    max_weight: float = Field(default=5.0, gt=0)


class RulesConfig(_Rules):
    """Complete rule set consumed by the trust state machine."""

    promotion: PromotionTable = PromotionTable()
    demotion: DemotionTable = DemotionTable()
    spam: SpamRules = SpamRules()
    voting: VotingRules = VotingRules()

    def promotion_for(self, level: TrustLevel) -> PromotionRule | None:
        """Return the rule for leaving ``level`` upwards, if that tier can rise."""
        return {
            TrustLevel.WILD: self.promotion.wild_to_regional,
            TrustLevel.REGIONAL: self.promotion.regional_to_surface,
            TrustLevel.SURFACE: self.promotion.surface_to_legacy,
        }.get(level)

    def demotion_for(self, level: TrustLevel) -> DemotionRule | None:
        """Return the score floor for ``level``, if that tier can drop."""
        return {
            TrustLevel.REGIONAL: self.demotion.regional_to_wild,
            TrustLevel.SURFACE: self.demotion.surface_to_regional,
            TrustLevel.LEGACY: self.demotion.legacy_to_surface,
        }.get(level)


def _merge_model(base: _ModelT, overrides: Any, path: str) -> _ModelT:
    if not isinstance(overrides, Mapping):
        raise ConfigLoadFailure(f"Rules section '{path}' must be an object")

    fields = type(base).model_fields
    for key in overrides:
        if key not in fields:
            logger.warning("Ignoring unknown rules key '%s.%s'", path, key)

    values: dict[str, Any] = {}
    for name in fields:
        current = getattr(base, name)
        if name not in overrides:
            values[name] = current
        elif isinstance(current, BaseModel):
            values[name] = _merge_model(current, overrides[name], f"{path}.{name}")
        else:
            values[name] = overrides[name]

    try:
        return type(base).model_validate(values)
    except ValidationError as exc:
        raise ConfigLoadFailure(f"Invalid rules section '{path}': {exc}") from exc


def merge_rules(document: Mapping[str, Any], defaults: RulesConfig | None = None) -> RulesConfig:
    """Merge a loaded rules document over ``defaults`` field by field.

    Raises:
        ConfigLoadFailure: If a section has the wrong shape or a value fails
            validation.
    """
    return _merge_model(defaults or RulesConfig(), document, "rules")


def load_rules(path: str | Path | None) -> RulesConfig:
    """Load the rules document at ``path``, falling back to defaults.

    A missing file is not an error. An unreadable or invalid document is
    logged as a warning and the built-in defaults are used instead.
    """
    defaults = RulesConfig()
    if path is None:
        return defaults

    rules_path = Path(path)
    if not rules_path.exists():
        logger.info("No consensus rules at %s; using defaults", rules_path)
        return defaults

    try:
        try:
            document = json.loads(rules_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigLoadFailure(f"Cannot read rules document {rules_path}: {exc}") from exc
        rules = merge_rules(document, defaults)
    except ConfigLoadFailure as exc:
        logger.warning("Falling back to default consensus rules: %s", exc)
        return defaults

    logger.info("Loaded consensus rules from %s", rules_path)
    return rules
