"""JSON run report for a replica provisioning run."""

import json
import os
import tempfile
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _elapsed(started_at: Optional[str], finished_at: str) -> Optional[float]:
    if not started_at:
        return None
    delta = datetime.fromisoformat(finished_at) - datetime.fromisoformat(started_at)
    return delta.total_seconds()


class ManifestService:
    """Keeps the run report in memory and rewrites the report file on every change.

    Nothing is written when no report file is configured or in dry-run mode;
    the in-memory report is still kept up to date.
    """

    def __init__(self, manifest_file: Optional[str], logger, enabled: bool = True):
        self.manifest_file = manifest_file
        self.logger = logger
        self.enabled = enabled and bool(manifest_file)
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "request": {},
            "states": [],
            "snapshot": None,
            "metadata": None,
            "steps": [],
            "error": None,
        }

    def _update(self, **fields):
        self.manifest.update(fields)
        self.write()

    def start_run(self, run_id: str, request: Dict[str, Any]):
        self._update(run_id=run_id, status="running", started_at=self._now(), request=request)

    def record_state(self, state: str):
        self.manifest["states"].append({"state": state, "at": self._now()})
        self.write()

    def set_snapshot(self, record):
        # binlog coordinates live under "metadata"
        snapshot = {key: value for key, value in asdict(record).items() if key != "metadata"}
        self._update(snapshot=snapshot)

    def set_metadata(self, metadata):
        self._update(metadata=asdict(metadata))

    def _open_step(self, step_name: str) -> Optional[Dict[str, Any]]:
        running = [
            step for step in self.manifest["steps"] if step["name"] == step_name and step["status"] == "running"
        ]
        return running[-1] if running else None

    def step_started(self, step_name: str, details: Optional[Dict[str, Any]] = None):
        step = dict.fromkeys(("finished_at", "duration_seconds", "error"))
        step.update(name=step_name, status="running", started_at=self._now(), details=dict(details or {}))
        self.manifest["steps"].append(step)
        self.write()

    def step_finished(
        self,
        step_name: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        step = self._open_step(step_name)
        if step is None:
            self.logger.debug("No running step named %s in the run report", step_name)
        else:
            finished_at = self._now()
            step.update(
                status=status,
                finished_at=finished_at,
                duration_seconds=_elapsed(step["started_at"], finished_at),
                error=error,
            )
            step["details"].update(details or {})
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        finished_at = self._now()
        self._update(
            status=status,
            finished_at=finished_at,
            duration_seconds=_elapsed(self.manifest["started_at"], finished_at),
            error=error,
        )

    def write(self):
        if not self.enabled:
            return

        payload = json.dumps(self.manifest, indent=2, sort_keys=True) + "\n"
        directory = os.path.dirname(self.manifest_file) or "."
        temp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, prefix=".report-", suffix=".json", delete=False
            ) as file_obj:
                temp_path = file_obj.name
                file_obj.write(payload)
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write run report '%s': %s", self.manifest_file, exc)
            if temp_path and os.path.exists(temp_path):
                os.remove(temp_path)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
