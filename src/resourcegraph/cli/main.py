#!/usr/bin/env python3
"""
resourcegraph CLI - Main entry point.

Usage:
    resourcegraph init                        # Write a default resourcegraph.yaml
    resourcegraph schema myapp.graph:registry # Print the generated SDL
    resourcegraph serve myapp.graph:gateway   # Run a gateway with uvicorn
"""

from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path
from typing import Any, List, Optional

from .. import __version__
from ..config import DEFAULT_CONFIG_PATH, GraphSettings, load_settings
from ..core.errors import ResourceGraphError
from ..core.registry import CapabilityRegistry
from ..core.schema import SchemaBuilder, SchemaDescriptor
from ..gateway import Gateway


def import_from_string(target: str) -> Any:
    """
    Import ``module.path:attribute``.

    Raises:
        ValueError: If the target is malformed or cannot be found
    """
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got '{target}'")

    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))
    module = importlib.import_module(module_name)

    value: Any = module
    for part in attribute.split("."):
        try:
            value = getattr(value, part)
        except AttributeError:
            raise ValueError(f"'{attribute}' not found in module '{module_name}'") from None
    return value


def _descriptor_for(target: Any, settings: GraphSettings) -> SchemaDescriptor:
    if isinstance(target, Gateway):
        return target.descriptor
    if isinstance(target, SchemaDescriptor):
        return target
    if isinstance(target, CapabilityRegistry):
        return SchemaBuilder().build(target, settings.entrypoints)
    raise ValueError(f"Expected a Gateway, CapabilityRegistry or SchemaDescriptor, got {type(target).__name__}")


def cmd_init(args: argparse.Namespace) -> int:
    """Write a default configuration file."""
    config_path = Path(args.config)
    if config_path.exists() and not args.force:
        print(f"Error: {config_path} already exists. Use --force to overwrite.")
        return 1

    GraphSettings().save(config_path)
    print(f"Created {config_path}")
    return 0


def cmd_schema(args: argparse.Namespace) -> int:
    """Print the generated schema as SDL."""
    try:
        settings = load_settings(args.config)
        descriptor = _descriptor_for(import_from_string(args.target), settings)
    except (ValueError, ImportError, ResourceGraphError) as e:
        print(f"Error: {e}")
        return 1

    sdl = descriptor.sdl()
    if args.output:
        Path(args.output).write_text(sdl + "\n")
        print(f"Schema saved: {args.output}")
    else:
        print(sdl)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run a gateway with uvicorn."""
    import uvicorn

    try:
        target = import_from_string(args.target)
    except (ValueError, ImportError, ResourceGraphError) as e:
        print(f"Error: {e}")
        return 1

    if not isinstance(target, Gateway):
        print(f"Error: {args.target} is not a Gateway")
        return 1

    uvicorn.run(target.app, host=args.host, port=args.port, log_level=args.log_level)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="resourcegraph",
        description="resourcegraph - GraphQL over declarative resources",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Settings file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init
    init_parser = subparsers.add_parser("init", help="Write a default settings file")
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite existing config")

    # schema
    schema_parser = subparsers.add_parser("schema", help="Print the generated schema (SDL)")
    schema_parser.add_argument("target", help="module:attribute of a Gateway or CapabilityRegistry")
    schema_parser.add_argument("--output", "-o", help="Write SDL to this file")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run a gateway")
    serve_parser.add_argument("target", help="module:attribute of a Gateway")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", "-p", type=int, default=8000)
    serve_parser.add_argument("--log-level", default="info")

    return parser


def app(args: Optional[List[str]] = None) -> int:
    """Main CLI application."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 0

    commands = {
        "init": cmd_init,
        "schema": cmd_schema,
        "serve": cmd_serve,
    }

    handler = commands.get(parsed.command)
    if handler:
        return handler(parsed)

    parser.print_help()
    return 1


def main() -> None:
    """Entry point for CLI."""
    sys.exit(app())


if __name__ == "__main__":
    main()
