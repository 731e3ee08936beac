# SPDX-License-Identifier: MIT
"""Utilities for loading configuration and workload files.

The helpers in this module centralise file-system access for the application
configuration and for workload descriptions replayed by the command line.
Errors are reported through an :class:`~utils.ErrorHandler` and re-raised as
concise exceptions.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import TypeVar

import logfire
import yaml
from pydantic import TypeAdapter, ValidationError

from models import AppConfig, Workload
from utils import ErrorHandler, LoggingErrorHandler

T = TypeVar("T")


def _read_file(path: Path, error_handler: ErrorHandler | None = None) -> str:
    """Return the contents of ``path``.

    Raises:
        FileNotFoundError: If the file does not exist.
        RuntimeError: If the file cannot be read.
    """
    handler = error_handler or LoggingErrorHandler()
    with logfire.span("fs.read_text", attributes={"path": str(path)}):
        try:
            with path.open("r", encoding="utf-8") as file:
                text = file.read()
                logfire.debug("Read text file", path=str(path), bytes=len(text))
                return text
        except FileNotFoundError:
            raise
        except OSError as exc:
            handler.handle(f"Error reading file {path}", exc)
            raise RuntimeError(
                f"An error occurred while reading the file: {exc}"
            ) from exc


def _read_yaml_file(
    path: Path,
    schema: type[T],
    error_handler: ErrorHandler | None = None,
) -> T:
    """Return YAML data loaded from ``path`` validated against ``schema``.

    An empty document validates as an empty mapping so every field falls back
    to its default.
    """
    handler = error_handler or LoggingErrorHandler()
    with logfire.span("fs.read_yaml", attributes={"path": str(path)}):
        try:
            adapter = TypeAdapter(schema)
            data = yaml.safe_load(_read_file(path, handler))
            return adapter.validate_python({} if data is None else data)
        except FileNotFoundError:
            raise
        except (RuntimeError, ValidationError, yaml.YAMLError, ValueError) as exc:
            handler.handle(f"Error reading YAML file {path}", exc)
            raise RuntimeError(
                f"An error occurred while reading the YAML file: {exc}"
            ) from exc


@lru_cache(maxsize=None)
def load_app_config(
    base_dir: Path | str = Path("config"),
    filename: Path | str = Path("app.yaml"),
) -> AppConfig:
    """Return application configuration from ``base_dir``.

    Results are cached for the lifetime of the process; use
    :func:`clear_config_cache` after editing the file.
    """
    path = Path(base_dir) / Path(filename)
    return _read_yaml_file(path, AppConfig)


def clear_config_cache() -> None:
    """Forget configuration files read by :func:`load_app_config`."""
    load_app_config.cache_clear()


def load_workload(path: Path | str, error_handler: ErrorHandler | None = None) -> Workload:
    """Return a workload description read from the YAML file at ``path``."""
    return _read_yaml_file(Path(path), Workload, error_handler)


__all__ = ["clear_config_cache", "load_app_config", "load_workload"]
