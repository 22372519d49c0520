"""
jobclock_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  This package sits above ``jobclock_kernel``; the kernel
    MUST NEVER import from ``jobclock_config``.  ``bridges`` translates
    settings into kernel constructor arguments.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ValueError`` -- a settings value is missing or out of range.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``jobclock_config_loaded`` log entry with the config id, version and
    checksum of the effective settings.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from jobclock_config.loader import load_yaml_file, parse_engine_settings
from jobclock_config.schema import EngineSettings

_logger = logging.getLogger("jobclock_kernel.config")

DATABASE_URL_ENV = "JOBCLOCK_DATABASE_URL"

# Default settings file
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Settings file to load.  Defaults to the packaged
            ``sets/default.yaml``.
        environ: Environment to read ``JOBCLOCK_DATABASE_URL`` from.
            Defaults to ``os.environ``.

    Returns:
        Frozen EngineSettings.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    data = load_yaml_file(path)
    settings = parse_engine_settings(data, database_url_override=env.get(DATABASE_URL_ENV))

    _logger.info(
        "jobclock_config_loaded",
        extra={
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "config_path": str(path),
            "database_url_from_env": DATABASE_URL_ENV in env,
        },
    )
    return settings


__all__ = ["EngineSettings", "get_active_config", "DATABASE_URL_ENV"]
