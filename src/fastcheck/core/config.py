"""
Project configuration.

Two things are read from the project root:

1. The compiler configuration, looked up the way mypy looks it up:
   mypy.ini, .mypy.ini, pyproject.toml ([tool.mypy]), setup.cfg ([mypy]).
   A project without one cannot be checked.
2. Optional fastcheck defaults from pyproject.toml:

       [tool.fastcheck]
       output = "json"
       quiet = true
       debounce_ms = 100
"""

import configparser
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError
from .models import OutputFormat

logger = logging.getLogger(__name__)

# Lookup order matches mypy's own default config search
CONFIG_CANDIDATES = ("mypy.ini", ".mypy.ini", "pyproject.toml", "setup.cfg")

DEFAULT_EXTENSIONS = (".py", ".pyi")


class ToolSettings(BaseModel):
    """Defaults for CLI options, from [tool.fastcheck]."""

    output: OutputFormat = OutputFormat.HUMAN
    quiet: bool = False
    metrics: bool = False
    no_cache: bool = False
    debounce_ms: int = Field(default=50, ge=0, description="Watch debounce interval")
    poll_interval: float = Field(default=0.25, gt=0, description="Watch polling period (s)")
    extensions: tuple[str, ...] = Field(default=DEFAULT_EXTENSIONS, min_length=1)

    model_config = ConfigDict(extra="forbid", frozen=True)


@dataclass
class ProjectConfig:
    """Resolved configuration of one project root."""

    root: Path
    compiler_config: Path
    settings: ToolSettings = field(default_factory=ToolSettings)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Cannot parse configuration ({e})", path) from e


def _read_ini(path: Path) -> configparser.RawConfigParser:
    parser = configparser.RawConfigParser()
    try:
        parser.read_string(path.read_text(encoding="utf-8"), source=str(path))
    except (OSError, configparser.Error) as e:
        raise ConfigurationError(f"Cannot parse configuration ({e})", path) from e
    return parser


def find_compiler_config(root: Path) -> Path | None:
    """
    Locate the mypy configuration file of a project.

    pyproject.toml and setup.cfg only count when they carry a mypy section.
    Malformed candidates raise ConfigurationError rather than being skipped.
    """
    for name in CONFIG_CANDIDATES:
        candidate = root / name
        if not candidate.is_file():
            continue
        if name == "pyproject.toml":
            if "mypy" in _read_toml(candidate).get("tool", {}):
                return candidate
        elif name == "setup.cfg":
            if _read_ini(candidate).has_section("mypy"):
                return candidate
        else:
            _read_ini(candidate)
            return candidate
    return None


def load_tool_settings(root: Path) -> ToolSettings:
    """Read [tool.fastcheck] from pyproject.toml, or defaults when absent."""
    pyproject = root / "pyproject.toml"
    if not pyproject.is_file():
        return ToolSettings()

    data = _read_toml(pyproject).get("tool", {}).get("fastcheck", {})
    try:
        return ToolSettings.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'tool.fastcheck'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid [tool.fastcheck] settings ({problems})", pyproject) from e


def load_project_config(root: Path) -> ProjectConfig:
    """Resolve the configuration of a project root. Raises ConfigurationError."""
    root = root.resolve()
    if not root.is_dir():
        raise ConfigurationError("Project root is not a directory", root)

    compiler_config = find_compiler_config(root)
    if compiler_config is None:
        raise ConfigurationError(
            "No mypy configuration found (expected mypy.ini, .mypy.ini, "
            "pyproject.toml with [tool.mypy] or setup.cfg with [mypy])",
            root,
        )

    settings = load_tool_settings(root)
    logger.debug("Using %s for %s", compiler_config.name, root)
    return ProjectConfig(root=root, compiler_config=compiler_config, settings=settings)
