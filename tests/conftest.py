"""Shared pytest configuration and fixtures."""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from mongodb_exporter.collectors.base import CollectorConfig
from mongodb_exporter.config.loader import ConfigLoader
from mongodb_exporter.utils.logger import setup_logger


# Path to example config file
CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.example.yaml"


def command_key(command):
    """Return (name, argument) for a command given as a string or a document."""
    if isinstance(command, str):
        return command, None
    name = next(iter(command))
    argument = command[name]
    return name, argument if isinstance(argument, str) else None


def make_client(
    commands=None,
    databases=None,
    collections=None,
    find=None,
    aggregate=None,
    count=None,
):
    """
    Build a mock diagnostic client.

    Args:
        commands: {(database, command_name[, argument]): reply or exception}
        databases: Database names returned by list_database_names
        collections: {database: [collection names]}
        find: {(database, collection): [documents] or exception}
        aggregate: {(database, collection): [documents] or exception}
        count: {(database, collection): int}

    Unknown commands raise OperationFailure so collectors see the same error
    a real server would give for an unsupported command.
    """
    from pymongo.errors import OperationFailure

    commands = commands or {}
    collections = collections or {}
    find = find or {}
    aggregate = aggregate or {}
    count = count or {}

    def resolve(value):
        if isinstance(value, BaseException):
            raise value
        return value

    def run_command(database, command, timeout=None):
        name, argument = command_key(command)
        for key in ((database, name, argument), (database, name)):
            if key in commands:
                return resolve(commands[key])
        raise OperationFailure(f"no such command: '{name}'", code=59)

    client = MagicMock()
    client.run_command.side_effect = run_command
    client.list_database_names.side_effect = lambda timeout=None: list(databases or [])
    client.list_collection_names.side_effect = (
        lambda database, timeout=None: resolve(collections.get(database, []))
    )
    client.find.side_effect = (
        lambda database, collection, filter=None, sort=None, limit=0, timeout=None:
        resolve(find.get((database, collection), []))
    )
    client.aggregate.side_effect = (
        lambda database, collection, pipeline, timeout=None:
        resolve(aggregate.get((database, collection), []))
    )
    client.count_documents.side_effect = (
        lambda database, collection, filter=None, timeout=None:
        resolve(count.get((database, collection), 0))
    )
    return client


def samples(sink, name):
    """Return {label tuple without instance labels: value} for one metric family."""
    result = {}
    for observation in sink.select(name):
        labels = observation.labels
        extra = tuple(
            value for key, value in labels.items()
            if key not in ("instance", "replica_set", "shard")
        )
        result[extra] = observation.value
    return result


@pytest.fixture(scope="session")
def config():
    """Load the example configuration."""
    if not CONFIG_PATH.exists():
        pytest.skip(f"Config file not found: {CONFIG_PATH}")

    return ConfigLoader.load_from_file(str(CONFIG_PATH))


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


@pytest.fixture
def propagating_logger():
    """Plain logger whose records reach caplog."""
    logger = logging.getLogger("tests.exporter")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def collector_config():
    """Collector configuration with no policy and no custom labels."""
    return CollectorConfig()
