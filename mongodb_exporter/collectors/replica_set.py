"""Replica set health collector."""

from typing import Any, Dict, Mapping

from bson.timestamp import Timestamp
from pymongo.errors import OperationFailure, PyMongoError

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_float, get_int, get_list, get_number, get_string, get_value
from .base import BaseCollector, safe_collect


# replSetGetStatus error code when the server is standalone
NO_REPLICATION_ENABLED = 76

MEMBER_STATES = {
    0: "STARTUP",
    1: "PRIMARY",
    2: "SECONDARY",
    3: "RECOVERING",
    5: "STARTUP2",
    6: "UNKNOWN",
    7: "ARBITER",
    8: "DOWN",
    9: "ROLLBACK",
    10: "REMOVED",
}


def member_state_name(state: int) -> str:
    """Map a numeric replica set member state to its name."""
    return MEMBER_STATES.get(state, "UNKNOWN")


def is_not_replica_set_error(error: PyMongoError) -> bool:
    """Return True when the error only says the server is not in a replica set."""
    if isinstance(error, OperationFailure) and error.code == NO_REPLICATION_ENABLED:
        return True
    return "not running with --replSet" in str(error)


class ReplicaSetCollector(BaseCollector):
    """Emit replica set member health and oplog metrics."""

    name = "replica_set_status"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "members": self._gauge(
                "mongodb_replset_number_of_members",
                "The number of members in the replica set",
            ),
            "member_state": self._gauge(
                "mongodb_replset_member_state",
                "The state of each replica set member",
                "name", "state",
            ),
            "member_health": self._gauge(
                "mongodb_replset_member_health",
                "The health of each replica set member (1 = up, 0 = down)",
                "name", "state",
            ),
            "oplog_size": self._gauge(
                "mongodb_replset_oplog_size_bytes",
                "The size of the oplog in bytes",
            ),
            "oplog_head": self._gauge(
                "mongodb_replset_oplog_head_timestamp",
                "The timestamp of the newest oplog entry (unix seconds)",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        try:
            status = await self._run_command("admin", {"replSetGetStatus": 1})
        except PyMongoError as e:
            if is_not_replica_set_error(e):
                self.logger.debug("Not running as a replica set, skipping")
                return
            raise

        instance = self.get_instance_info(status)
        # replSetGetStatus carries the set name at the top level, not under repl
        set_name = get_string(status, "set")
        if set_name and "replica_set" not in self.config.custom_labels:
            instance["replica_set"] = set_name

        members = get_list(status, "members") or []
        self._emit(sink, "members", float(len(members)), instance)

        for member in members:
            self._collect_member(sink, member, instance)

        await self._collect_oplog(sink, instance)

    def _collect_member(self, sink: MetricSink, member: Any, instance: Mapping[str, str]) -> None:
        name = get_string(member, "name")
        state = get_int(member, "state")
        health = get_float(member, "health")

        if name is None or state is None or health is None:
            self.logger.warning("Invalid member data", extra={"member": str(member)[:200]})
            return

        state_name = member_state_name(state)
        self._emit(sink, "member_state", float(state), instance, name, state_name)
        self._emit(sink, "member_health", health, instance, name, state_name)

    async def _collect_oplog(self, sink: MetricSink, instance: Mapping[str, str]) -> None:
        """Oplog statistics; failures are expected on arbiters and logged at debug."""
        try:
            stats = await self._run_command("local", {"collStats": "oplog.rs"})
            self._emit(sink, "oplog_size", get_number(stats, "size"), instance)
        except PyMongoError as e:
            self.logger.debug(f"Failed to get oplog stats: {e}")

        try:
            entries = await self._find("local", "oplog.rs", sort=[("$natural", -1)], limit=1)
        except PyMongoError as e:
            self.logger.debug(f"Failed to read latest oplog entry: {e}")
            return

        if not entries:
            return
        ts = get_value(entries[0], "ts")
        if isinstance(ts, Timestamp):
            self._emit(sink, "oplog_head", float(ts.time), instance)
