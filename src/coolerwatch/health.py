"""File-based health check for Docker container monitoring.

The scheduled service rewrites the file after every sweep, so a stale
timestamp means sweeps stopped running even if the status still reads
healthy.

Docker HEALTHCHECK example:
    HEALTHCHECK --interval=60s --timeout=3s --retries=3 \\
        CMD python -c "import json; h=json.loads(open('/tmp/coolerwatch-health').read()); exit(0 if h['status']=='healthy' else 1)"
"""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from coolerwatch.alerts.models import SweepReport
from coolerwatch.utils.timestamps import isoformat_or_none, utcnow

HEALTH_FILE = Path("/tmp/coolerwatch-health")


class HealthStatus(Enum):
    """Service health written to HEALTH_FILE.

    Values:
        STARTING: Initializing, or waiting for the first sweep
        HEALTHY: Last sweep completed, possibly with failed stages
        UNHEALTHY: Last sweep failed, or the store is unreadable
    """

    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


def sweep_details(report: SweepReport) -> Dict[str, Any]:
    """Health details for a completed sweep.

    ``degraded`` is set when a stage failed or an alert could not be
    delivered; the service keeps running and retries on the next sweep.
    """
    duration = None
    if report.finished_at is not None:
        duration = round((report.finished_at - report.started_at).total_seconds(), 3)
    failed_stages = [s.stage for s in report.failed_stages]
    return {
        "last_sweep": report.started_at.isoformat(),
        "duration_seconds": duration,
        "alerts_dispatched": report.alerts_dispatched,
        "dispatch_failures": report.dispatch_failures,
        "flags_cleared": report.flags_cleared,
        "failed_stages": failed_stages,
        "degraded": bool(failed_stages or report.dispatch_failures),
    }


def record_sweep_health(report: SweepReport) -> None:
    """Mark the service healthy after a completed sweep."""
    update_health_status(HealthStatus.HEALTHY, sweep_details(report))


def record_sweep_failure(error: str, last_successful_sweep: Optional[datetime] = None) -> None:
    """Mark the service unhealthy after a sweep that did not complete."""
    update_health_status(
        HealthStatus.UNHEALTHY,
        {
            "last_sweep": "failed",
            "error": error,
            "last_successful_sweep": isoformat_or_none(last_successful_sweep),
        },
    )


def update_health_status(
    status: HealthStatus,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Write the health file.

    Args:
        status: Current health status
        details: Extra context, e.g. {"alerts_dispatched": 2}
    """
    health_data = {
        "status": status.value,
        "timestamp": utcnow().isoformat(),
        "details": details or {},
    }
    HEALTH_FILE.write_text(json.dumps(health_data))


def get_health_status() -> Optional[Dict[str, Any]]:
    """Read the health file, None if missing or unreadable."""
    if not HEALTH_FILE.exists():
        return None
    try:
        return json.loads(HEALTH_FILE.read_text())
    except (json.JSONDecodeError, OSError):
        return None


def clear_health_status() -> None:
    """Remove the health file on shutdown."""
    HEALTH_FILE.unlink(missing_ok=True)
