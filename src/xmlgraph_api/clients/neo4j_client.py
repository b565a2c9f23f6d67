#!/usr/bin/env python3
"""
Neo4j Database Client

A low-level client wrapper for Neo4j graph database operations.
Handles connection management, query execution and write transactions.

This client is pure infrastructure - it contains no business logic.
Use services layer for business logic that uses this client.
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager

from neo4j import GraphDatabase

logger = logging.getLogger(__name__)


class Neo4jClient:
    """
    Neo4j database client with connection pooling.

    Provides methods for:
    - Executing Cypher queries
    - Running a unit of work inside one explicit write transaction

    Example:
        ```python
        client = Neo4jClient()
        with client.transaction() as tx:
            tx.run("CREATE (:XmlDocument {url: $url})", {"url": "file:books.xml"})
        client.close()
        ```

    Environment Variables:
        - NEO4J_URI: Database connection URI (default: bolt://localhost:7687)
        - NEO4J_USER: Authentication username (default: neo4j)
        - NEO4J_PASSWORD: Authentication password (default: password)
        - NEO4J_DATABASE: Target database (default: server default)
    """

    def __init__(self, uri: str = None, user: str = None, password: str = None, database: str = None):
        """
        Initialize Neo4j client with connection parameters.

        Args:
            uri: Database connection URI. If None, reads from NEO4J_URI env var.
            user: Authentication username. If None, reads from NEO4J_USER env var.
            password: Authentication password. If None, reads from NEO4J_PASSWORD env var.
            database: Database name. If None, reads from NEO4J_DATABASE env var.
        """
        self.uri = uri or os.getenv("NEO4J_URI", "bolt://localhost:7687")
        self.user = user or os.getenv("NEO4J_USER", "neo4j")
        self.password = password or os.getenv("NEO4J_PASSWORD", "password")
        self.database = database or os.getenv("NEO4J_DATABASE")
        self.driver = GraphDatabase.driver(self.uri, auth=(self.user, self.password))

    def _session(self):
        if self.database:
            return self.driver.session(database=self.database)
        return self.driver.session()

    def query(self, cypher_query: str, parameters: dict | None = None) -> list[dict]:
        """
        Execute a Cypher query and return raw record data.

        Args:
            cypher_query: Cypher query string to execute
            parameters: Optional query parameters for parameterized queries

        Returns:
            List of dictionaries containing query result records.

        Raises:
            neo4j.exceptions.CypherSyntaxError: If query syntax is invalid
            neo4j.exceptions.ClientError: If query execution fails
        """
        with self._session() as session:
            result = session.run(cypher_query, parameters or {})
            return [record.data() for record in result]

    @contextmanager
    def transaction(self) -> Iterator:
        """
        Open a session and an explicit transaction around a unit of work.

        The transaction is committed when the block exits normally and rolled
        back when it raises; the exception is re-raised.

        Example:
            ```python
            with client.transaction() as tx:
                sink = Neo4jGraphSink(tx)
                ...
            ```
        """
        with self._session() as session:
            tx = session.begin_transaction()
            try:
                yield tx
                tx.commit()
            except Exception:
                logger.warning("Rolling back Neo4j transaction")
                tx.rollback()
                raise
            finally:
                tx.close()

    def close(self):
        """Close the driver connection and release resources."""
        if self.driver:
            self.driver.close()
