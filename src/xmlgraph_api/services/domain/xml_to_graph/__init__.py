"""
XML to Graph Conversion Domain

Handles conversion of XML parse events to graph nodes and ordered relationships.
"""

from .builder import GraphBuilder
from .sink import GraphSink, ImportSummary, InMemoryGraph, Neo4jGraphSink, apply_mutations

__all__ = ["GraphBuilder", "GraphSink", "ImportSummary", "InMemoryGraph", "Neo4jGraphSink", "apply_mutations"]
