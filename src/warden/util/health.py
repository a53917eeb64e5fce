"""Health check utilities for the running server.

Provides:
- HealthSnapshot: Aggregated health status
- check_disk_free: Disk space verification
- check_python_version: Python version check
- check_write_access: Filesystem write permission check
- check_memory: Available memory check
- collect_health_snapshot: Aggregate all health checks
"""

import os
import shutil
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import psutil
from pydantic import BaseModel


class HealthSnapshot(BaseModel):
    """Aggregated health check results."""

    ok: bool
    ts_utc: str
    checks: dict[str, dict[str, Any]]


def check_disk_free(path: Path, *, min_free_mb: int) -> dict[str, Any]:
    """Check if disk has sufficient free space.

    Args:
        path: Path to check disk space for.
        min_free_mb: Minimum required free space in MB.

    Returns:
        Check result with ok status and details.
    """
    try:
        # Walk up to the nearest existing directory
        probe = path
        while not probe.exists() and probe != probe.parent:
            probe = probe.parent

        if hasattr(os, "statvfs"):
            stat = os.statvfs(probe)
            free_bytes = stat.f_bavail * stat.f_frsize
        else:
            free_bytes = shutil.disk_usage(probe).free

        free_mb = free_bytes // (1024 * 1024)
        return {
            "ok": free_mb >= min_free_mb,
            "detail": {
                "path": str(path),
                "free_mb": free_mb,
                "min_free_mb": min_free_mb,
            },
        }
    except OSError as e:
        return {
            "ok": False,
            "detail": {
                "path": str(path),
                "free_mb": 0,
                "min_free_mb": min_free_mb,
                "error": str(e),
            },
        }


def check_python_version(*, min_major: int, min_minor: int) -> dict[str, Any]:
    """Check if Python version meets minimum requirements."""
    current = sys.version_info
    ok = (current.major, current.minor) >= (min_major, min_minor)

    return {
        "ok": ok,
        "detail": {
            "current": f"{current.major}.{current.minor}.{current.micro}",
            "min": f"{min_major}.{min_minor}",
        },
    }


def check_write_access(path: Path) -> dict[str, Any]:
    """Check if path is writable by creating and deleting a temp file.

    Args:
        path: Directory path to check write access.

    Returns:
        Check result with ok status and details.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(dir=path, prefix=".health_check_")
        try:
            os.write(fd, b"health_check")
        finally:
            os.close(fd)
        os.unlink(temp_path)

        return {
            "ok": True,
            "detail": {"path": str(path)},
        }
    except OSError as e:
        return {
            "ok": False,
            "detail": {"path": str(path), "error": str(e)},
        }


def check_memory(*, max_percent: float = 95.0) -> dict[str, Any]:
    """Check that system memory usage is below a ceiling."""
    memory = psutil.virtual_memory()
    return {
        "ok": memory.percent < max_percent,
        "detail": {
            "used_percent": memory.percent,
            "available_mb": memory.available // (1024 * 1024),
            "max_percent": max_percent,
        },
    }


def collect_health_snapshot(
    data_dir: Path,
    min_free_disk_mb: int,
    min_python_major: int,
    min_python_minor: int,
) -> HealthSnapshot:
    """Collect all health checks into a snapshot.

    Args:
        data_dir: Data directory path for disk and write checks.
        min_free_disk_mb: Minimum free disk space in MB.
        min_python_major: Minimum Python major version.
        min_python_minor: Minimum Python minor version.

    Returns:
        Aggregated health snapshot.
    """
    checks: dict[str, dict[str, Any]] = {}

    checks["disk_free"] = check_disk_free(data_dir, min_free_mb=min_free_disk_mb)
    checks["python_version"] = check_python_version(
        min_major=min_python_major, min_minor=min_python_minor
    )
    checks["write_access"] = check_write_access(data_dir)
    checks["memory"] = check_memory()

    # Overall ok is True only if all checks pass
    all_ok = all(check.get("ok", False) for check in checks.values())

    return HealthSnapshot(
        ok=all_ok,
        ts_utc=datetime.now(timezone.utc).isoformat(),
        checks=checks,
    )
