"""Thin diagnostic query surface over a pymongo client."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pymongo
from pymongo import MongoClient


DEFAULT_TIMEOUT = 10.0

Command = Union[str, Mapping[str, Any]]


class DiagnosticClient:
    """
    Blocking, thread-safe wrapper exposing the queries collectors need.

    Each call is bounded by its own client-side operation timeout via
    ``pymongo.timeout``; exceeding it raises a ``PyMongoError`` subclass.
    """

    def __init__(self, client: MongoClient, logger: Optional[logging.Logger] = None):
        """
        Initialize diagnostic client.

        Args:
            client: Connected pymongo client (shared, safe for concurrent use)
            logger: Optional logger instance
        """
        self.client = client
        self.logger = (logger or logging.getLogger(__name__)).getChild(self.__class__.__name__)

    def run_command(
        self,
        database: str,
        command: Command,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> Dict[str, Any]:
        """
        Run an administrative command against a database.

        Args:
            database: Database name (e.g. "admin")
            command: Command name or ordered command document
            timeout: Seconds before the call is abandoned

        Returns:
            Dict[str, Any]: Command reply
        """
        with pymongo.timeout(timeout):
            return self.client[database].command(command)

    def list_database_names(self, timeout: float = DEFAULT_TIMEOUT) -> List[str]:
        """List database names visible to the connected user."""
        with pymongo.timeout(timeout):
            return self.client.list_database_names()

    def list_collection_names(self, database: str, timeout: float = DEFAULT_TIMEOUT) -> List[str]:
        """List collection names within *database*."""
        with pymongo.timeout(timeout):
            return self.client[database].list_collection_names()

    def find(
        self,
        database: str,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        limit: int = 0,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> List[Dict[str, Any]]:
        """
        Run a find query and materialize the result.

        Args:
            database: Database name
            collection: Collection name
            filter: Query filter, None for all documents
            sort: List of (key, direction) pairs
            limit: Maximum documents to return, 0 for no limit
            timeout: Seconds before the call is abandoned

        Returns:
            List[Dict[str, Any]]: Matching documents
        """
        with pymongo.timeout(timeout):
            cursor = self.client[database][collection].find(filter or {})
            if sort:
                cursor = cursor.sort(list(sort))
            if limit:
                cursor = cursor.limit(limit)
            return list(cursor)

    def aggregate(
        self,
        database: str,
        collection: str,
        pipeline: Sequence[Mapping[str, Any]],
        timeout: float = DEFAULT_TIMEOUT,
    ) -> List[Dict[str, Any]]:
        """Run an aggregation pipeline and materialize the result."""
        with pymongo.timeout(timeout):
            return list(self.client[database][collection].aggregate(list(pipeline)))

    def count_documents(
        self,
        database: str,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> int:
        """Count documents matching *filter*."""
        with pymongo.timeout(timeout):
            return self.client[database][collection].count_documents(filter or {})
