"""Input helpers for configuration and workload files.

Exports:
    load_app_config: Read and validate ``config/app.yaml``.
    clear_config_cache: Invalidate cached configuration.
    load_workload: Read a workload description for the ``simulate`` command.
"""

from .loader import clear_config_cache, load_app_config, load_workload

__all__ = ["clear_config_cache", "load_app_config", "load_workload"]
