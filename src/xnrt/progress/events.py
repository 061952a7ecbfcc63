"""Progress events and the metrics each one can move.

Every event must map to at least one metric and every metric must be
reachable from some event; both are checked when this module is imported.
"""

from __future__ import annotations

from enum import Enum


class ProgressEvent(str, Enum):
    """Domain events that can move task or achievement progress."""

    DEPOSIT_APPROVED = "deposit_approved"
    REFERRAL_ACQUIRED = "referral_acquired"
    MINING_COMPLETED = "mining_completed"
    STREAK_INCREMENTED = "streak_incremented"
    STAKE_CREATED = "stake_created"
    EARNINGS_CREDITED = "earnings_credited"


class ProgressMetric(str, Enum):
    """Running per-user metrics. Task and achievement ``category`` holds one of these values."""

    EARNINGS = "earnings"
    REFERRALS = "referrals"
    STREAKS = "streaks"
    MINING = "mining"
    STAKING = "staking"
    DEPOSITS = "deposits"


EVENT_METRICS: dict[ProgressEvent, frozenset[ProgressMetric]] = {
    ProgressEvent.DEPOSIT_APPROVED: frozenset({ProgressMetric.DEPOSITS, ProgressMetric.EARNINGS}),
    ProgressEvent.REFERRAL_ACQUIRED: frozenset({ProgressMetric.REFERRALS}),
    ProgressEvent.MINING_COMPLETED: frozenset({ProgressMetric.MINING, ProgressMetric.EARNINGS}),
    ProgressEvent.STREAK_INCREMENTED: frozenset({ProgressMetric.STREAKS, ProgressMetric.EARNINGS}),
    ProgressEvent.STAKE_CREATED: frozenset({ProgressMetric.STAKING}),
    ProgressEvent.EARNINGS_CREDITED: frozenset({ProgressMetric.EARNINGS}),
}


def check_event_metrics(mapping: dict[ProgressEvent, frozenset[ProgressMetric]]) -> None:
    """Raise if an event has no metrics or a metric is unreachable."""
    missing = [e.value for e in ProgressEvent if not mapping.get(e)]
    if missing:
        raise RuntimeError(f"Progress events without metrics: {missing}")
    reachable = frozenset().union(*mapping.values())
    orphaned = [m.value for m in ProgressMetric if m not in reachable]
    if orphaned:
        raise RuntimeError(f"Progress metrics no event can move: {orphaned}")


def metrics_for(event: ProgressEvent) -> frozenset[ProgressMetric]:
    return EVENT_METRICS[event]


check_event_metrics(EVENT_METRICS)
