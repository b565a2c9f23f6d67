"""
Domain Layer

This package contains business logic organized by domain area.
Domain services implement core algorithms and workflows but should not
directly handle external I/O (use clients layer for that).

Domains:
- xml: Hardened parsing, path selection and nested-record building
- xml_to_graph: Conversion of parse events to graph nodes and relationships
"""
