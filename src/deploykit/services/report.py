"""Run report generation service."""

import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class RunReportService:
    """Collects pipeline step outcomes and writes them as JSON.

    Nothing is written when ``report_file`` is None.
    """

    def __init__(self, report_file: Optional[str], logger):
        self.report_file = report_file
        self.logger = logger
        self.report: Dict[str, Any] = {
            "workflow": None,
            "status": "running",
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "target": {},
            "image_tag": None,
            "steps": [],
            "error": None,
        }

    def start_run(self, workflow: str, target: Dict[str, Any]):
        self.report["workflow"] = workflow
        self.report["status"] = "running"
        self.report["started_at"] = self._now()
        self.report["target"] = target
        self.write()

    def set_image_tag(self, image_tag: Optional[str]):
        self.report["image_tag"] = image_tag
        self.write()

    def step_skipped(self, step_name: str):
        self.report["steps"].append(
            {
                "name": step_name,
                "status": "skipped",
                "started_at": None,
                "finished_at": None,
                "duration_seconds": None,
                "error": None,
            }
        )
        self.write()

    def step_started(self, step_name: str):
        self.report["steps"].append(
            {
                "name": step_name,
                "status": "running",
                "started_at": self._now(),
                "finished_at": None,
                "duration_seconds": None,
                "error": None,
            }
        )
        self.write()

    def step_finished(self, step_name: str, status: str, error: Optional[str] = None):
        for step in reversed(self.report["steps"]):
            if step["name"] == step_name and step["status"] == "running":
                step["status"] = status
                step["finished_at"] = self._now()
                step["error"] = error
                step["duration_seconds"] = self._elapsed(step["started_at"], step["finished_at"])
                break
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.report["status"] = status
        self.report["finished_at"] = self._now()
        if self.report.get("started_at"):
            self.report["duration_seconds"] = self._elapsed(
                self.report["started_at"], self.report["finished_at"]
            )
        self.report["error"] = error
        self.write()

    def write(self):
        if not self.report_file:
            return

        try:
            os.makedirs(os.path.dirname(self.report_file) or ".", exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                prefix="run-report-",
                suffix=".json",
                dir=os.path.dirname(os.path.abspath(self.report_file)),
            )
        except OSError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.report_file, exc)
            return

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.report, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.report_file)
        except OSError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.report_file, exc)
            try:
                os.remove(temp_path)
            except OSError:
                pass

    @staticmethod
    def _elapsed(started_at: str, finished_at: str) -> float:
        started = datetime.fromisoformat(started_at)
        finished = datetime.fromisoformat(finished_at)
        return (finished - started).total_seconds()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
