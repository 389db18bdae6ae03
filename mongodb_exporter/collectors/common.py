"""Helpers shared by the collector implementations."""

from typing import Any, Dict, Mapping, Optional, Tuple

from ..utils.values import get_string


SYSTEM_DATABASES = frozenset({"admin", "config", "local"})

INSTANCE_LABEL_NAMES = ("instance", "replica_set", "shard")

# Label names the collectors add on top of the instance labels.
COLLECTOR_LABEL_NAMES = frozenset({
    "collection",
    "cursor_type",
    "database",
    "direction",
    "error_type",
    "host",
    "index",
    "lock_type",
    "mode",
    "name",
    "operation",
    "plan_summary",
    "pool_name",
    "read_concern",
    "result",
    "shard_host",
    "shard_name",
    "state",
    "storage_stat",
    "type",
})

UNKNOWN = "unknown"


def should_skip_database(name: str) -> bool:
    """Return True for the server's internal databases."""
    return name in SYSTEM_DATABASES


def should_skip_collection(name: str) -> bool:
    """Return True for ``system.*`` collections."""
    return name.startswith("system.")


def parse_namespace(namespace: str) -> Tuple[str, str]:
    """
    Split "db.collection" on the first dot.

    Args:
        namespace: Full namespace string

    Returns:
        Tuple[str, str]: (database, collection); collection is "" when absent
    """
    database, _, collection = namespace.partition(".")
    return database, collection


def instance_labels(
    snapshot: Optional[Mapping[str, Any]] = None,
    custom_labels: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Derive the instance label set from a diagnostic snapshot.

    Args:
        snapshot: Server reply carrying host, repl.setName and shard fields,
            or an empty mapping when the caller has none
        custom_labels: Static operator labels, merged last

    Returns:
        Dict[str, str]: Always contains instance, replica_set and shard
    """
    snapshot = snapshot or {}
    labels = {
        "instance": get_string(snapshot, "host") or UNKNOWN,
        "replica_set": get_string(snapshot, "repl", "setName") or UNKNOWN,
        "shard": get_string(snapshot, "shard") or UNKNOWN,
    }
    for key, value in (custom_labels or {}).items():
        labels[key] = str(value)
    return labels
