import json

from deploykit.core import Workflow
from deploykit.errors import DeployKitError


class ScriptedWorkflow(Workflow):
    name = "scripted"

    def __init__(self, action, report_file=None):
        super().__init__(report_file=report_file, command_runner=object())
        self.action = action

    def describe_target(self):
        return {"environment": "staging"}

    def execute(self):
        self.action()


def read_report(path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_successful_run_returns_zero_and_finalizes_report(tmp_path):
    report_file = tmp_path / "report.json"

    assert ScriptedWorkflow(lambda: None, report_file=str(report_file)).run() == 0

    report = read_report(report_file)
    assert report["workflow"] == "scripted"
    assert report["status"] == "success"
    assert report["target"] == {"environment": "staging"}


def test_domain_error_returns_one_and_records_message(tmp_path):
    report_file = tmp_path / "report.json"

    def fail():
        raise DeployKitError("registry unreachable")

    assert ScriptedWorkflow(fail, report_file=str(report_file)).run() == 1

    report = read_report(report_file)
    assert report["status"] == "failed"
    assert report["error"] == "registry unreachable"


def test_unexpected_error_returns_one(tmp_path):
    def explode():
        raise ValueError("unexpected")

    assert ScriptedWorkflow(explode).run() == 1


def test_keyboard_interrupt_marks_run_aborted(tmp_path):
    report_file = tmp_path / "report.json"

    def interrupt():
        raise KeyboardInterrupt

    assert ScriptedWorkflow(interrupt, report_file=str(report_file)).run() == 1
    assert read_report(report_file)["status"] == "aborted"
