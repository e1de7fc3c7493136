"""Safe execution wrapper for GDAL/OGR command-line utilities.

This module provides a safe interface for executing GDAL and OGR command-line
tools (ogr2ogr, ogrinfo, etc.) as subprocesses. Non-zero exit codes raise
CommandError carrying the command's stderr output.

Example:
    Convert a shapefile to GeoJSON:
        >>> from featurestore.utils.gdal_helpers import run_command, CommandError

        >>> try:
        ...     run_command([
        ...         "ogr2ogr",
        ...         "-f", "GeoJSON",
        ...         "countries.geojson",
        ...         "countries.shp",
        ...         "-t_srs", "EPSG:4326",
        ...     ])
        ... except CommandError as e:
        ...     print(f"Command failed: {e}")
"""

from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Exception raised when a GDAL/OGR subprocess command fails.

    Contains the error message from the failed command's stderr output.

    Example:
        Handle command failures:
            >>> try:
            ...     run_command(["ogr2ogr", "-f", "GeoJSON", ...])
            ... except CommandError as e:
            ...     print(f"GDAL command failed: {e}")
    """


def run_command(
    command: Iterable[str | pathlib.Path],
    workdir: pathlib.Path | None = None,
) -> None:
    """Execute a command and raise on non-zero exit.

    Args:
        command: Iterable arguments to execute (e.g., ["ogr2ogr", "-f", ...]).
        workdir: Optional working directory for the command execution.

    Raises:
        CommandError: if the command exits with a non-zero status code or
            the executable cannot be found. The message contains the
            command's stderr output.
    """
    args = [str(part) for part in command]
    logger.debug(f"Running {' '.join(args)}")
    try:
        result = subprocess.run(
            args,
            cwd=workdir,
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError as e:
        raise CommandError(f"Executable not found: {args[0]}") from e
    if result.returncode != 0:
        raise CommandError(result.stderr.strip() or "Unknown command failure")
