#!/usr/bin/env python3
"""Graph sinks: where builder mutations end up.

``InMemoryGraph`` keeps nodes and relationships in lists (dry runs, tests);
``Neo4jGraphSink`` writes them through an open Neo4j transaction in
``UNWIND`` batches.
"""

import logging
import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .mutations import CreateNode, CreateRelationship, GraphMutation

logger = logging.getLogger(__name__)

# Labels and relationship types are interpolated into Cypher; only plain identifiers are allowed
CYPHER_SAFE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class GraphSink(Protocol):
    """Storage collaborator receiving node and relationship creations."""

    def create_node(self, labels: tuple[str, ...], properties: dict[str, Any]) -> Any: ...

    def create_relationship(self, start: Any, rel_type: str, end: Any) -> None: ...

    def flush(self) -> None: ...

    def identity(self, handle: Any) -> Any: ...


@dataclass
class ImportSummary:
    """Outcome of applying one document's mutations to a sink."""

    document: Any = None
    nodes: dict[str, int] = field(default_factory=dict)
    relationships: dict[str, int] = field(default_factory=dict)

    @property
    def node_count(self) -> int:
        return sum(self.nodes.values())

    @property
    def relationship_count(self) -> int:
        return sum(self.relationships.values())


def apply_mutations(mutations: Iterable[GraphMutation], sink: GraphSink) -> ImportSummary:
    """Apply builder mutations to a sink.

    Args:
        mutations: Output of GraphBuilder.build()
        sink: Storage collaborator

    Returns:
        Summary holding the sink identity of the document node and counts per label/type
    """
    handles: dict[int, Any] = {}
    node_counts: Counter = Counter()
    relationship_counts: Counter = Counter()

    for mutation in mutations:
        if isinstance(mutation, CreateNode):
            handles[mutation.key] = sink.create_node(mutation.labels, mutation.properties)
            node_counts.update(mutation.labels)
        elif isinstance(mutation, CreateRelationship):
            sink.create_relationship(handles[mutation.start], mutation.rel_type, handles[mutation.end])
            relationship_counts[mutation.rel_type] += 1

    sink.flush()
    document = sink.identity(handles[0]) if 0 in handles else None
    return ImportSummary(document, dict(node_counts), dict(relationship_counts))


@dataclass
class StoredNode:
    id: int
    labels: tuple[str, ...]
    properties: dict[str, Any]


@dataclass
class StoredRelationship:
    start: int
    type: str
    end: int


class InMemoryGraph:
    """List-backed sink with a few traversal helpers."""

    def __init__(self):
        self.nodes: list[StoredNode] = []
        self.relationships: list[StoredRelationship] = []

    def create_node(self, labels: tuple[str, ...], properties: dict[str, Any]) -> int:
        node = StoredNode(len(self.nodes), tuple(labels), dict(properties))
        self.nodes.append(node)
        return node.id

    def create_relationship(self, start: int, rel_type: str, end: int) -> None:
        self.relationships.append(StoredRelationship(start, rel_type, end))

    def flush(self) -> None:
        pass

    def identity(self, handle: int) -> int:
        return handle

    def nodes_with_label(self, label: str) -> list[StoredNode]:
        return [node for node in self.nodes if label in node.labels]

    def label_counts(self) -> dict[str, int]:
        counts = Counter()
        for node in self.nodes:
            counts.update(node.labels)
        return dict(counts)

    def outgoing(self, node_id: int, rel_type: str | None = None) -> list[StoredRelationship]:
        return [r for r in self.relationships if r.start == node_id and (rel_type is None or r.type == rel_type)]

    def incoming(self, node_id: int, rel_type: str | None = None) -> list[StoredRelationship]:
        return [r for r in self.relationships if r.end == node_id and (rel_type is None or r.type == rel_type)]

    def relationships_of_type(self, rel_type: str) -> list[StoredRelationship]:
        return [r for r in self.relationships if r.type == rel_type]

    def follow(self, start: int, rel_type: str) -> list[int]:
        """Node ids reached by repeatedly following ``rel_type`` from ``start`` (start included)."""
        successors = {r.start: r.end for r in self.relationships_of_type(rel_type)}
        path = [start]
        while path[-1] in successors and len(path) <= len(self.nodes):
            path.append(successors[path[-1]])
        return path


def _label_clause(labels: tuple[str, ...]) -> str:
    for label in labels:
        if not CYPHER_SAFE_IDENTIFIER.match(label):
            raise ValueError(f"Unsafe node label: {label!r}")
    return "".join(f":`{label}`" for label in labels)


class Neo4jGraphSink:
    """Writes nodes and relationships through an open Neo4j transaction.

    Creations are buffered and sent as ``UNWIND`` statements grouped by label
    set (nodes) and relationship type. Nodes are always flushed before the
    relationships that reference them.

    Args:
        tx: Open neo4j transaction; committing it is the caller's business
        batch_size: Buffered creations that trigger a flush
    """

    def __init__(self, tx, batch_size: int = 1000):
        self.tx = tx
        self.batch_size = batch_size
        self._next_ref = 0
        self._pending_nodes: list[tuple[int, tuple[str, ...], dict[str, Any]]] = []
        self._pending_relationships: list[tuple[int, str, int]] = []
        self._element_ids: dict[int, str] = {}

    def create_node(self, labels: tuple[str, ...], properties: dict[str, Any]) -> int:
        ref = self._next_ref
        self._next_ref += 1
        self._pending_nodes.append((ref, tuple(labels), properties))
        self._maybe_flush()
        return ref

    def create_relationship(self, start: int, rel_type: str, end: int) -> None:
        if not CYPHER_SAFE_IDENTIFIER.match(rel_type):
            raise ValueError(f"Unsafe relationship type: {rel_type!r}")
        self._pending_relationships.append((start, rel_type, end))
        self._maybe_flush()

    def _maybe_flush(self):
        if len(self._pending_nodes) + len(self._pending_relationships) >= self.batch_size:
            self.flush()

    def _flush_nodes(self):
        groups: dict[tuple[str, ...], list[dict[str, Any]]] = {}
        for ref, labels, properties in self._pending_nodes:
            groups.setdefault(labels, []).append({"ref": ref, "properties": properties})
        self._pending_nodes = []

        for labels, rows in groups.items():
            query = (
                f"UNWIND $rows AS row CREATE (n{_label_clause(labels)}) "
                "SET n = row.properties RETURN row.ref AS ref, elementId(n) AS id"
            )
            for record in self.tx.run(query, {"rows": rows}):
                self._element_ids[record["ref"]] = record["id"]

    def _flush_relationships(self):
        groups: dict[str, list[dict[str, str]]] = {}
        for start, rel_type, end in self._pending_relationships:
            groups.setdefault(rel_type, []).append(
                {"start": self._element_ids[start], "end": self._element_ids[end]}
            )
        self._pending_relationships = []

        for rel_type, rows in groups.items():
            query = (
                "UNWIND $rows AS row "
                "MATCH (a) WHERE elementId(a) = row.start "
                "MATCH (b) WHERE elementId(b) = row.end "
                f"CREATE (a)-[:`{rel_type}`]->(b)"
            )
            self.tx.run(query, {"rows": rows})

    def flush(self) -> None:
        if self._pending_nodes:
            self._flush_nodes()
        if self._pending_relationships:
            self._flush_relationships()
        logger.debug(f"Flushed to Neo4j, {len(self._element_ids)} node(s) written so far")

    def identity(self, handle: int) -> str | None:
        return self._element_ids.get(handle)
