import json

import pytest

from deploykit.build import ImageBuilder
from deploykit.errors import ConfigurationError
from deploykit.models import RunConfig

ACCOUNT_ID = "123456789012"
REGISTRY = f"{ACCOUNT_ID}.dkr.ecr.us-east-1.amazonaws.com"


def build_config(**kwargs):
    values = {"account_id": ACCOUNT_ID}
    values.update(kwargs)
    return RunConfig(**values)


def test_build_runs_steps_in_order_and_derives_next_registry_tag(
    fake_runner_factory, registry_responses
):
    runner = fake_runner_factory(responses=registry_responses())
    builder = ImageBuilder(build_config(push=True), command_runner=runner)

    assert builder.run() == 0

    commands = runner.commands
    assert commands[0][:3] == ["aws", "ecr", "get-login-password"]
    assert commands[1] == ["docker", "login", "--username", "AWS", "--password-stdin", REGISTRY]
    assert commands[2][:3] == ["aws", "sts", "get-caller-identity"]
    assert commands[3][:3] == ["aws", "sts", "get-session-token"]
    assert commands[4][:5] == ["aws", "ecr", "list-images", "--repository-name", "staging/api"]
    assert commands[5][:4] == ["docker", "build", "-t", "default/staging/api:8"]
    assert commands[6] == ["docker", "tag", "default/staging/api:8", f"{REGISTRY}/staging/api:8"]
    assert commands[7] == ["docker", "push", f"{REGISTRY}/staging/api:8"]
    assert len(commands) == 8

    assert runner.calls[1][2]["input_text"] == "registry-password"
    assert builder.context.image_tag == "8"


def test_build_passes_credentials_through_environment(fake_runner_factory, registry_responses):
    runner = fake_runner_factory(responses=registry_responses())
    builder = ImageBuilder(build_config(tag="42", no_cache=True), command_runner=runner)

    assert builder.run() == 0

    _, build_cmd, options = next(call for call in runner.calls if call[1][:2] == ["docker", "build"])
    assert "--build-arg" in build_cmd
    assert "AWS_SESSION_TOKEN" in build_cmd
    assert "temp-token" not in " ".join(build_cmd)
    assert "--no-cache" in build_cmd
    assert build_cmd[-1] == "."
    assert options["env"]["AWS_ACCESS_KEY_ID"] == "ASIATEMP"
    assert options["env"]["AWS_SESSION_TOKEN"] == "temp-token"
    assert options["env"]["ENVIRONMENT"] == "staging"
    assert options["fail_on_stderr"] is False


def test_build_with_explicit_tag_skips_derivation_and_push(fake_runner_factory, registry_responses):
    runner = fake_runner_factory(responses=registry_responses())
    builder = ImageBuilder(build_config(tag="42"), command_runner=runner)

    assert builder.run() == 0

    assert not runner.called("aws", "ecr", "list-images")
    assert not runner.called("docker", "push")
    assert runner.called("docker", "tag", "default/staging/api:42", f"{REGISTRY}/staging/api:42")


def test_build_with_ledger_derives_and_records_version(
    tmp_path, fake_runner_factory, registry_responses
):
    ledger_file = tmp_path / "versions.txt"
    ledger_file.write_text("staging/api:4\nstaging/worker:2\n", encoding="utf-8")
    runner = fake_runner_factory(responses=registry_responses())
    builder = ImageBuilder(
        build_config(version_source="ledger", ledger_file=str(ledger_file)),
        command_runner=runner,
    )

    assert builder.run() == 0

    assert not runner.called("aws", "ecr", "list-images")
    assert runner.called("docker", "build", "-t", "default/staging/api:5")
    assert ledger_file.read_text(encoding="utf-8") == "staging/api:5\nstaging/worker:2\n"


def test_build_with_ledger_starts_at_one_for_new_image(
    tmp_path, fake_runner_factory, registry_responses
):
    ledger_file = tmp_path / "versions.txt"
    runner = fake_runner_factory(responses=registry_responses())
    builder = ImageBuilder(
        build_config(image="worker", version_source="ledger", ledger_file=str(ledger_file)),
        command_runner=runner,
    )

    assert builder.run() == 0

    assert runner.called("docker", "build", "-t", "default/staging/worker:1")
    assert ledger_file.read_text(encoding="utf-8") == "staging/worker:1\n"


@pytest.mark.parametrize("tag", ["latest", "²"])
def test_build_with_non_numeric_explicit_tag_leaves_ledger_alone(
    tmp_path, tag, fake_runner_factory, registry_responses
):
    ledger_file = tmp_path / "versions.txt"
    ledger_file.write_text("staging/api:4\n", encoding="utf-8")
    runner = fake_runner_factory(responses=registry_responses())
    builder = ImageBuilder(
        build_config(version_source="ledger", ledger_file=str(ledger_file), tag=tag, push=True),
        command_runner=runner,
    )

    assert builder.run() == 0

    assert runner.called("docker", "push", f"{REGISTRY}/staging/api:{tag}")
    assert ledger_file.read_text(encoding="utf-8") == "staging/api:4\n"


def test_build_account_mismatch_halts_before_credentials(fake_runner_factory, registry_responses):
    runner = fake_runner_factory(responses=registry_responses(account_id="999999999999"))
    builder = ImageBuilder(build_config(), command_runner=runner)

    assert builder.run() == 1

    assert builder.context.account_id == "999999999999"
    assert not runner.called("aws", "sts", "get-session-token")
    assert not runner.called("docker", "build")


def test_failing_build_step_halts_later_steps(tmp_path, fake_runner_factory, registry_responses):
    ledger_file = tmp_path / "versions.txt"
    ledger_file.write_text("staging/api:4\n", encoding="utf-8")
    runner = fake_runner_factory(
        responses=registry_responses(),
        failures={("docker", "build")},
    )
    builder = ImageBuilder(
        build_config(push=True, version_source="ledger", ledger_file=str(ledger_file)),
        command_runner=runner,
    )

    assert builder.run() == 1

    assert not runner.called("docker", "tag")
    assert not runner.called("docker", "push")
    assert ledger_file.read_text(encoding="utf-8") == "staging/api:4\n"


def test_unparseable_identity_fails_the_run(fake_runner_factory, registry_responses):
    responses = registry_responses()
    responses[("aws", "sts", "get-caller-identity")] = "not json"
    runner = fake_runner_factory(responses=responses)
    builder = ImageBuilder(build_config(), command_runner=runner)

    assert builder.run() == 1
    assert not runner.called("aws", "sts", "get-session-token")


def test_missing_account_id_fails_before_any_subprocess(fake_runner_factory):
    runner = fake_runner_factory()

    with pytest.raises(ConfigurationError, match="--account-id"):
        ImageBuilder(build_config(account_id=""), command_runner=runner)

    assert runner.calls == []


def test_invalid_version_source_is_rejected(fake_runner_factory):
    with pytest.raises(ConfigurationError, match="Invalid version source"):
        ImageBuilder(build_config(version_source="git"), command_runner=fake_runner_factory())


def test_build_writes_report_with_skipped_steps(tmp_path, fake_runner_factory, registry_responses):
    report_file = tmp_path / "report.json"
    runner = fake_runner_factory(responses=registry_responses())
    builder = ImageBuilder(build_config(), report_file=str(report_file), command_runner=runner)

    assert builder.run() == 0

    report = json.loads(report_file.read_text(encoding="utf-8"))
    statuses = {step["name"]: step["status"] for step in report["steps"]}
    assert report["workflow"] == "build"
    assert report["status"] == "success"
    assert report["image_tag"] == "8"
    assert statuses["build_image"] == "success"
    assert statuses["push_image"] == "skipped"
    assert statuses["record_version"] == "skipped"
