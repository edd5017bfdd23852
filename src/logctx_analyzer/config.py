"""Rule configuration: the fixed vocabulary the analyzer checks against.

Defaults describe the zerolog-style API and ``context.Context``. A project can
override any field from ``[tool.logctx]`` in pyproject.toml or from a
``.logctx.yml`` file.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

log = logging.getLogger(__name__)

PYPROJECT = "pyproject.toml"
YAML_NAMES = (".logctx.yml", ".logctx.yaml")
TOOL_KEY = "logctx"


class ConfigError(ValueError):
    """Configuration file exists but cannot be used."""


class RuleConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    rule_id: str = "logctx"
    subject: str = "zerolog"
    rationale: str = "context should be included for proper log correlation"

    # Builder under analysis and the producer-configuration builder
    builder_type: str = "zerolog.Event"
    producer_config_type: str = "zerolog.Context"

    terminal_methods: frozenset[str] = frozenset({"msg", "msgf", "msg_func", "send"})
    injection_method: str = "ctx"
    producing_methods: frozenset[str] = frozenset({
        "trace", "debug", "info", "warn", "error", "fatal", "panic", "log", "print", "err",
    })
    finalizing_method: str = "logger"

    capability_type: str = "context.Context"
    capability_methods: frozenset[str] = frozenset({"deadline", "done", "err", "value"})

    suppression_keyword: str = "nolint"
    flake8_code: str = Field(default="LCX001", pattern=r"^[A-Z]{1,3}[0-9]{3}$")

    @field_validator(
        "rule_id", "builder_type", "producer_config_type", "injection_method",
        "finalizing_method", "capability_type", "suppression_keyword",
    )
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("terminal_methods", "capability_methods")
    @classmethod
    def _non_empty_set(cls, value: frozenset[str]) -> frozenset[str]:
        cleaned = frozenset(v.strip() for v in value if v.strip())
        if not cleaned:
            raise ValueError("must name at least one method")
        return cleaned

    def message_for(self, method: str) -> str:
        """Diagnostic text for a terminal call to method."""
        return (
            f"{self.subject} event missing .{self.injection_method}(ctx) "
            f"before {method}() - {self.rationale}"
        )


def find_config(start: Path) -> Path | None:
    """Walk up from start looking for a config file that mentions this tool."""
    start = start.resolve()
    directory = start if start.is_dir() else start.parent
    for candidate_dir in (directory, *directory.parents):
        for name in YAML_NAMES:
            path = candidate_dir / name
            if path.is_file():
                return path
        pyproject = candidate_dir / PYPROJECT
        if pyproject.is_file() and _pyproject_section(pyproject) is not None:
            return pyproject
    return None


def load_config(path: Path | None = None) -> RuleConfig:
    """Load a RuleConfig from path; defaults when path is None or has no section."""
    if path is None:
        return RuleConfig()

    if not path.is_file():
        raise ConfigError(f"config file not found: {path}")

    if path.suffix == ".toml":
        raw = _pyproject_section(path)
    else:
        raw = _yaml_section(path)

    if raw is None:
        log.debug("No [tool.%s] settings in %s, using defaults", TOOL_KEY, path)
        return RuleConfig()

    data = {key.replace("-", "_"): value for key, value in raw.items()}
    try:
        config = RuleConfig(**data)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration in {path}: {exc}") from exc
    log.info("Loaded configuration from %s", path)
    return config


def _pyproject_section(path: Path) -> dict[str, Any] | None:
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc
    section = data.get("tool", {}).get(TOOL_KEY)
    if section is not None and not isinstance(section, dict):
        raise ConfigError(f"[tool.{TOOL_KEY}] in {path} must be a table")
    return section


def _yaml_section(path: Path) -> dict[str, Any] | None:
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    # Accept both a bare mapping and one nested under the tool key
    section = data.get(TOOL_KEY, data)
    if not isinstance(section, dict):
        raise ConfigError(f"'{TOOL_KEY}' in {path} must be a mapping")
    return section
