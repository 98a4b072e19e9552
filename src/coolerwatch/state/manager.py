"""Sweep bookkeeping with atomic writes."""

import json
import shutil
import tempfile
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import structlog

from coolerwatch.alerts.models import SweepReport

log = structlog.get_logger()


@dataclass
class SweepState:
    """Summary of the last successful sweep."""

    last_successful_sweep: datetime  # UTC timezone-aware
    alerts_dispatched: int = 0
    dispatch_failures: int = 0
    flags_cleared: int = 0
    failed_stages: List[str] = field(default_factory=list)
    schema_version: str = "1.0"


class StateManager:
    """Persists the last sweep so the CLI and health checks can report it.

    Written with a temp file in the same directory and a rename, so a
    crash mid-write leaves the previous state intact.
    """

    STATE_FILENAME = ".last_sweep.json"

    def __init__(self, state_dir: str) -> None:
        """Initialize state manager.

        Args:
            state_dir: Directory holding the state file
        """
        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / self.STATE_FILENAME

    def read_state(self) -> Optional[SweepState]:
        """Read the last sweep.

        Returns:
            SweepState, or None on first run or if the file is unusable
        """
        if not self.state_file.exists():
            log.debug("state_file_not_found", path=str(self.state_file))
            return None

        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
            timestamp = datetime.fromisoformat(data["last_successful_sweep"])
        except json.JSONDecodeError as e:
            log.warning("state_file_corrupted", path=str(self.state_file), error=str(e))
            return None
        except (KeyError, TypeError, ValueError) as e:
            log.warning("state_timestamp_invalid", path=str(self.state_file), error=str(e))
            return None

        if timestamp.tzinfo is None:
            log.warning(
                "state_timestamp_invalid",
                path=str(self.state_file),
                reason="timestamp is not timezone-aware",
            )
            return None

        return SweepState(
            last_successful_sweep=timestamp.astimezone(timezone.utc),
            alerts_dispatched=int(data.get("alerts_dispatched", 0)),
            dispatch_failures=int(data.get("dispatch_failures", 0)),
            flags_cleared=int(data.get("flags_cleared", 0)),
            failed_stages=list(data.get("failed_stages") or []),
        )

    def read_last_sweep(self) -> Optional[datetime]:
        state = self.read_state()
        return state.last_successful_sweep if state else None

    def record_sweep(self, report: SweepReport) -> SweepState:
        """Persist a finished sweep report."""
        state = SweepState(
            last_successful_sweep=report.finished_at or report.started_at,
            alerts_dispatched=report.alerts_dispatched,
            dispatch_failures=report.dispatch_failures,
            flags_cleared=report.flags_cleared,
            failed_stages=[s.stage for s in report.failed_stages],
        )
        self.write_state(state)
        return state

    def write_state(self, state: SweepState) -> None:
        """Write state atomically.

        Raises:
            PermissionError: If the state directory is not writable
        """
        self.state_dir.mkdir(parents=True, exist_ok=True)

        payload = asdict(state)
        payload["last_successful_sweep"] = state.last_successful_sweep.isoformat()
        content = json.dumps(payload, indent=2) + "\n"

        temp_fd, temp_path = tempfile.mkstemp(
            dir=self.state_dir,
            prefix=".tmp-state-",
            suffix=".json",
        )
        try:
            with open(temp_fd, "w", encoding="utf-8") as f:
                f.write(content)
            shutil.move(temp_path, self.state_file)
        except PermissionError:
            Path(temp_path).unlink(missing_ok=True)
            log.error("state_write_permission_denied", path=str(self.state_dir))
            raise
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

        log.info(
            "state_saved",
            path=str(self.state_file),
            last_sweep=payload["last_successful_sweep"],
            alerts_dispatched=state.alerts_dispatched,
        )
