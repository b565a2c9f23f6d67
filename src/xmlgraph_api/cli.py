#!/usr/bin/env python3
"""
Command-line interface.

    xmlgraph load books.xml --path '/catalog/book[@id="bk102"]/author'
    xmlgraph load 'data.zip!books.xml' --simple
    xmlgraph load config.xml --group-by-child
    xmlgraph import tei.xml --config import.yaml --dry-run

Options may come from a YAML file (``--config``) using the same camelCase
names as the HTTP API; flags given on the command line win.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .core.logging import setup_logging
from .models.models import ImportOptions, LoadOptions
from .services.domain.xml.errors import XmlProcessingError


def _read_config(path: str | None) -> dict[str, Any]:
    if not path:
        return {}
    with open(Path(path), encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    if not isinstance(config, dict):
        raise ValueError(f"{path} must contain a mapping of options")
    return config


def _build_options(model, args: argparse.Namespace, flags: dict[str, str]):
    """Merge YAML options with the flags that were actually given."""
    options = _read_config(args.config)
    for dest, alias in flags.items():
        value = getattr(args, dest)
        if value is not None:
            options[alias] = value
    return model.model_validate(options)


def _add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("locator", help="File path, URL, s3://bucket/object or archive!entry")
    parser.add_argument("--config", help="YAML file with options (camelCase names)")
    parser.add_argument(
        "--no-fail-on-error", dest="fail_on_error", action="store_false", default=None,
        help="Return an empty result instead of failing on malformed XML",
    )
    parser.add_argument(
        "--allow-dtd", dest="allow_dtd", action="store_true", default=None,
        help="Trust the document: accept entity declarations and fetch external DTDs",
    )
    parser.add_argument(
        "--forbid-dtd", dest="forbid_dtd", action="store_true", default=None,
        help="Reject any DOCTYPE declaration",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")


COMMON_FLAGS = {"fail_on_error": "failOnError", "allow_dtd": "allowDtd", "forbid_dtd": "forbidDtd"}


def _run_load(args: argparse.Namespace) -> int:
    from .core.dependencies import get_source_reader
    from .services.xml_loader import load_xml

    options = _build_options(LoadOptions, args, {**COMMON_FLAGS, "simple": "simpleMode"})
    for record in load_xml(args.locator, args.path, options, get_source_reader()):
        print(json.dumps(record, ensure_ascii=False))  # noqa: T201
    return 0


def _run_import(args: argparse.Namespace) -> int:
    from .core.config import get_import_config
    from .core.dependencies import get_neo4j_client, get_source_reader
    from .services.domain.xml_to_graph.sink import InMemoryGraph, Neo4jGraphSink
    from .services.xml_loader import import_xml

    options = _build_options(
        ImportOptions,
        args,
        {
            **COMMON_FLAGS,
            "connect_characters": "connectCharacters",
            "next_word": "createNextWordRelationships",
            "filter_leading_whitespace": "filterLeadingWhitespace",
            "characters_rel_type": "charactersRelType",
            "delimiter": "delimiter",
        },
    )
    reader = get_source_reader()

    if args.dry_run:
        summary = import_xml(args.locator, InMemoryGraph(), options, reader)
    else:
        client = get_neo4j_client()
        try:
            with client.transaction() as tx:
                summary = import_xml(args.locator, Neo4jGraphSink(tx, get_import_config().batch_size), options, reader)
        finally:
            client.close()

    print(json.dumps({  # noqa: T201
        "locator": args.locator,
        "document": summary.document,
        "nodes": summary.nodes,
        "relationships": summary.relationships,
        "node_count": summary.node_count,
        "relationship_count": summary.relationship_count,
    }, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xmlgraph",
        description="Load XML documents as nested records or import them into Neo4j as ordered graphs",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    load = subparsers.add_parser("load", help="Print the records of a document as JSON lines")
    _add_common_arguments(load)
    load.add_argument("--path", help="Path expression selecting the elements to print")
    children = load.add_mutually_exclusive_group()
    children.add_argument("--simple", dest="simple", action="store_true", default=None,
                          help="Name children keys after the owning element")
    children.add_argument("--group-by-child", dest="simple", action="store_const", const="child",
                          help="Group children under keys named after their own tag")
    load.set_defaults(handler=_run_load)

    graph = subparsers.add_parser("import", help="Import a document as a graph")
    _add_common_arguments(graph)
    tokenization = graph.add_mutually_exclusive_group()
    tokenization.add_argument("--connect-characters", dest="connect_characters", action="store_true", default=None,
                              help="One XmlCharacters node per text run")
    tokenization.add_argument("--next-word", dest="next_word", action="store_true", default=None,
                              help="Chain XmlWord nodes with NEXT_WORD")
    graph.add_argument("--filter-leading-whitespace", dest="filter_leading_whitespace", action="store_true",
                       default=None, help="Strip leading whitespace from text runs")
    graph.add_argument("--characters-rel-type", dest="characters_rel_type", default=None,
                       help="Relationship type chaining XmlCharacters nodes (default: NE)")
    graph.add_argument("--delimiter", default=None, help="Regular expression splitting text into words")
    graph.add_argument("--dry-run", action="store_true", help="Build the graph in memory instead of Neo4j")
    graph.set_defaults(handler=_run_import)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, stream="ext://sys.stderr")

    try:
        return args.handler(args)
    except XmlProcessingError as e:
        print(f"error: {e}", file=sys.stderr)  # noqa: T201
        return 1
    except (OSError, ValueError, yaml.YAMLError, ValidationError) as e:
        parser.error(str(e))


if __name__ == "__main__":
    sys.exit(main())
