"""Subprocess utilities for teShuffle."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)


def run_command(
    cmd: List[str],
    stdout_path: Optional[Union[str, Path]] = None,
    timeout: Optional[int] = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """
    Run an external command without a shell.

    Args:
        cmd: Command and arguments
        stdout_path: Write stdout to this file instead of capturing it
        timeout: Timeout in seconds
        check: Raise CalledProcessError on non-zero exit

    Returns:
        CompletedProcess instance (stdout is None when redirected to a file)
    """
    logger.debug(f"Running command: {' '.join(map(str, cmd))}")

    try:
        if stdout_path is not None:
            with open(stdout_path, "w") as out:
                result = subprocess.run(
                    [str(c) for c in cmd],
                    stdout=out,
                    stderr=subprocess.PIPE,
                    text=True,
                    timeout=timeout,
                )
        else:
            result = subprocess.run(
                [str(c) for c in cmd],
                capture_output=True,
                text=True,
                timeout=timeout,
            )
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {cmd[0]}")
        raise

    if result.returncode != 0:
        logger.warning(f"{cmd[0]} returned {result.returncode}")
        if result.stderr:
            logger.warning(f"stderr: {result.stderr.strip()}")
        if check:
            raise subprocess.CalledProcessError(
                result.returncode, cmd, result.stdout, result.stderr
            )

    return result


def check_tool_installed(tool_name: str) -> bool:
    """True if a command-line tool is on PATH."""
    return shutil.which(tool_name) is not None


def require_tools(tools: List[str]) -> None:
    """
    Check that required tools are installed.

    Raises:
        RuntimeError: If any tool is missing
    """
    missing = [tool for tool in tools if not check_tool_installed(tool)]
    if missing:
        raise RuntimeError(
            f"Missing required tools: {', '.join(missing)}. "
            "Please install them and ensure they are in your PATH."
        )
    logger.debug(f"All required tools available: {', '.join(tools)}")
