"""Metric enablement policy."""

from typing import Iterable


def is_metric_enabled(
    metric_name: str,
    enabled_metrics: Iterable[str] = (),
    disabled_metrics: Iterable[str] = (),
) -> bool:
    """
    Decide whether a metric (or collector) should emit.

    The deny-list always wins. An empty allow-list enables everything that
    is not denied; a non-empty one requires membership.

    Args:
        metric_name: Collector or metric name
        enabled_metrics: Allow-list
        disabled_metrics: Deny-list

    Returns:
        bool: True when output should be emitted
    """
    if metric_name in set(disabled_metrics):
        return False

    allowed = set(enabled_metrics)
    if not allowed:
        return True
    return metric_name in allowed
