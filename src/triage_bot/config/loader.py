"""Read the YAML configuration file into a validated BotConfig.

``${VAR}`` references are filled from the environment before the YAML is
parsed, so secrets never need to live in the file. ``${VAR:-fallback}``
supplies a value for variables that are unset.
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path

import yaml

from .schema import BotConfig

_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def substitute_env_vars(text: str, environ: Mapping[str, str] | None = None) -> str:
    """Replace ``${VAR}`` and ``${VAR:-fallback}`` references in ``text``.

    Raises:
        ValueError: If a variable without a fallback is unset.
    """
    env = os.environ if environ is None else environ

    def resolve(match: re.Match[str]) -> str:
        name = match.group("name")
        if name in env:
            return env[name]
        if match.group("default") is not None:
            return match.group("default")
        raise ValueError(f"Environment variable {name} not found")

    return _ENV_REFERENCE.sub(resolve, text)


def load_config(path: Path) -> BotConfig:
    """Load, substitute, parse and validate the configuration file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a variable is unset, the YAML is not a mapping, or
            validation fails (pydantic's ValidationError is a ValueError).
    """
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    data = yaml.safe_load(substitute_env_vars(path.read_text()))
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    config = BotConfig.model_validate(data)
    validate_config(config)
    return config


def validate_config(config: BotConfig) -> None:
    """Check references between sections that the schema cannot see.

    Reminders may only name configured levels and statuses, reminder names
    must be unique, and the modal's default window must be on offer.

    Raises:
        ValueError: On the first inconsistency found.
    """
    taxonomy = config.taxonomy
    for reminder in config.reminders:
        unknown_levels = sorted(set(reminder.levels) - set(taxonomy.level_names))
        if unknown_levels:
            raise ValueError(
                f"Reminder {reminder.name} references unknown levels: {unknown_levels}"
            )
        unknown_statuses = sorted(set(reminder.missing_statuses) - set(taxonomy.status_names))
        if unknown_statuses:
            raise ValueError(
                f"Reminder {reminder.name} references unknown statuses: {unknown_statuses}"
            )

    names = [r.name for r in config.reminders]
    if len(names) != len(set(names)):
        raise ValueError(f"Duplicate reminder names: {names}")

    triage = config.triage
    if triage.default_hours_back not in triage.hours_options:
        raise ValueError(
            f"default_hours_back {triage.default_hours_back} must be one of "
            f"hours_options {triage.hours_options}"
        )
