"""Configurable intelligence thresholds.

All thresholds live on one frozen dataclass. Teams override any subset through
``settings.thresholds`` in their team file; anything not overridden falls back
to :data:`DEFAULT_THRESHOLDS`.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdConfig:
    """Fully resolved threshold values."""

    stale_pr_warning_days: float = 1
    stale_pr_alert_days: float = 2
    stale_issue_days: float = 7
    review_imbalance_threshold: float = 0.6
    high_churn_multiplier: float = 3
    high_churn_minimum: float = 1000
    trend_alert_percent: float = 50
    trend_warning_percent: float = 25
    merge_time_warning_h: float = 24
    merge_time_alert_h: float = 48


DEFAULT_THRESHOLDS = ThresholdConfig()

# Team files use the camelCase keys.
FIELD_ALIASES: Dict[str, str] = {
    "stalePrWarningDays": "stale_pr_warning_days",
    "stalePrAlertDays": "stale_pr_alert_days",
    "staleIssueDays": "stale_issue_days",
    "reviewImbalanceThreshold": "review_imbalance_threshold",
    "highChurnMultiplier": "high_churn_multiplier",
    "highChurnMinimum": "high_churn_minimum",
    "trendAlertPercent": "trend_alert_percent",
    "trendWarningPercent": "trend_warning_percent",
    "mergeTimeWarningH": "merge_time_warning_h",
    "mergeTimeAlertH": "merge_time_alert_h",
}

_FIELD_NAMES = frozenset(field.name for field in dataclasses.fields(ThresholdConfig))


def resolve_thresholds(overrides: Optional[Mapping[str, Any]] = None) -> ThresholdConfig:
    """Merge partial user overrides onto the defaults.

    Keys may be either attribute names or their camelCase aliases. ``None``
    values count as unspecified. Values are not range-checked.

    Args:
        overrides: Partial threshold mapping, or ``None``.

    Returns:
        A new ``ThresholdConfig``; ``DEFAULT_THRESHOLDS`` is never modified.
    """
    if not overrides:
        return dataclasses.replace(DEFAULT_THRESHOLDS)

    changes: Dict[str, Any] = {}
    for key, value in overrides.items():
        name = FIELD_ALIASES.get(key, key)
        if name not in _FIELD_NAMES:
            logger.warning("Ignoring unknown threshold override", extra={"threshold": key})
            continue
        if value is None:
            continue
        changes[name] = value

    resolved = dataclasses.replace(DEFAULT_THRESHOLDS, **changes)

    if not resolved.trend_alert_percent >= resolved.trend_warning_percent >= 0:
        logger.warning(
            "Trend thresholds are out of order; expected alert >= warning >= 0",
            extra={
                "trend_alert_percent": resolved.trend_alert_percent,
                "trend_warning_percent": resolved.trend_warning_percent,
            },
        )

    return resolved
