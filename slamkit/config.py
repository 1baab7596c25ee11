"""Process-wide parameters read from a YAML configuration file."""

from __future__ import annotations

import logging
import threading

import yaml

log = logging.getLogger(__name__)


class _Store:
    def __init__(self):
        self.lock = threading.Lock()
        self.parameters: dict | None = None


_store = _Store()


def _strip_directive(text: str) -> str:
    # Files written by other tools may open with a "%YAML:1.0" line.
    return "\n".join(
        line for line in text.splitlines() if not line.lstrip().startswith("%YAML")
    )


def set_parameter_file(filename) -> None:
    """Load the parameter file; replaces any parameters loaded before.

    Raises FileNotFoundError if the file is missing and ValueError if it is
    not a YAML mapping. After a failure no parameters are configured.
    """
    with _store.lock:
        _store.parameters = None
        try:
            with open(filename, encoding="utf-8") as fh:
                text = fh.read()
        except FileNotFoundError:
            log.error("parameter file %s does not exist.", filename)
            raise
        try:
            data = yaml.safe_load(_strip_directive(text))
        except yaml.YAMLError as exc:
            raise ValueError(f"parameter file {filename} is not valid YAML: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"parameter file {filename} does not hold a mapping")
        _store.parameters = data


def get(key):
    """Value of a parameter; KeyError if absent, RuntimeError if nothing is loaded."""
    with _store.lock:
        if _store.parameters is None:
            raise RuntimeError("no parameter file has been loaded")
        try:
            return _store.parameters[key]
        except KeyError:
            raise KeyError(f"parameter {key!r} is not set") from None