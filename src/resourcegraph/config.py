"""
Configuration loading for resourcegraph gateways.

Settings come from ``resourcegraph.yaml`` (if present) and are overridden
by ``RESOURCEGRAPH_*`` environment variables:

    RESOURCEGRAPH_MAX_DEPTH=6
    RESOURCEGRAPH_MAX_PAGE_SIZE=500
    RESOURCEGRAPH_ENTRYPOINTS=employees,positions
    RESOURCEGRAPH_PLAYGROUND=false
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .core.errors import SchemaConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "RESOURCEGRAPH_"
DEFAULT_CONFIG_PATH = "resourcegraph.yaml"


@dataclass
class GraphSettings:
    """Limits and transport options for one gateway."""
    max_depth: Optional[int] = None
    max_page_size: int = 1000
    default_page_size: Optional[int] = None
    entrypoints: Optional[list[str]] = None  # default: every resource
    graphql_path: str = "/graphql"
    playground: bool = True
    title: str = "resourcegraph"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])

    def __post_init__(self):
        if self.max_depth is not None and self.max_depth < 1:
            raise SchemaConfigError(f"max_depth must be positive, got {self.max_depth}")
        if self.max_page_size < 1:
            raise SchemaConfigError(f"max_page_size must be positive, got {self.max_page_size}")
        if self.default_page_size is not None and not 1 <= self.default_page_size <= self.max_page_size:
            raise SchemaConfigError(
                f"default_page_size must be between 1 and max_page_size ({self.max_page_size})"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GraphSettings":
        """Create settings from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to a dict for YAML serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def save(self, path: Path | str = DEFAULT_CONFIG_PATH) -> None:
        """Save settings to a YAML file."""
        path = Path(path)
        path.write_text(yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False))


def _coerce(name: str, raw: str) -> Any:
    if name in ("max_depth", "max_page_size", "default_page_size"):
        return int(raw) if raw.strip() else None
    if name == "playground":
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if name in ("entrypoints", "cors_origins"):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> dict[str, Any]:
    """Settings given as ``RESOURCEGRAPH_<NAME>`` environment variables."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for f in fields(GraphSettings):
        raw = environ.get(ENV_PREFIX + f.name.upper())
        if raw is not None:
            try:
                overrides[f.name] = _coerce(f.name, raw)
            except ValueError as e:
                raise SchemaConfigError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}") from e
    return overrides


def load_settings(
    path: Path | str | None = None,
    environ: Optional[Mapping[str, str]] = None,
) -> GraphSettings:
    """
    Load settings from YAML and the environment.

    Args:
        path: YAML file (default: ./resourcegraph.yaml, skipped if missing)
        environ: Environment mapping (default: os.environ)

    Returns:
        GraphSettings
    """
    path = Path(path or DEFAULT_CONFIG_PATH)
    data: dict[str, Any] = {}
    if path.exists():
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise SchemaConfigError(f"{path} must contain a mapping")
        logger.info(f"Loaded settings from {path}")

    data.update(env_overrides(environ))
    return GraphSettings.from_dict(data)
