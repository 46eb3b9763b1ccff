"""AWS CLI adapter for deploykit."""

import json
from typing import Any, Dict, List, Optional

from deploykit.errors import ParseError
from deploykit.models import ProcessResult, TemporaryCredentials


class AwsCliService:
    """Builds ``aws`` invocations and parses their JSON answers."""

    SESSION_DURATION_SECONDS = 3600

    def __init__(self, command_runner, logger, region: Optional[str] = None, profile: Optional[str] = None):
        self.command_runner = command_runner
        self.logger = logger
        self.region = region
        self.profile = profile

    def command(self, service: str, operation: str, *args: str, json_output: bool = False) -> List[str]:
        cmd = ["aws", service, operation, *args]
        if self.region:
            cmd += ["--region", self.region]
        if self.profile:
            cmd += ["--profile", self.profile]
        if json_output:
            cmd += ["--output", "json"]
        return cmd

    def get_login_password(self) -> str:
        result = self.command_runner.run(self.command("ecr", "get-login-password"), sensitive=True)
        return result.stdout.strip()

    def get_caller_account(self) -> str:
        result = self.command_runner.run(
            self.command("sts", "get-caller-identity", json_output=True)
        )
        payload = self._parse_json(result, "sts get-caller-identity")
        account = payload.get("Account")
        if not account:
            raise ParseError("sts get-caller-identity returned no Account.")
        return str(account)

    def get_session_token(self, duration_seconds: int = SESSION_DURATION_SECONDS) -> TemporaryCredentials:
        result = self.command_runner.run(
            self.command(
                "sts",
                "get-session-token",
                "--duration-seconds",
                str(duration_seconds),
                json_output=True,
            ),
            sensitive=True,
        )
        payload = self._parse_json(result, "sts get-session-token", sensitive=True)
        try:
            credentials = payload["Credentials"]
            return TemporaryCredentials(
                access_key_id=credentials["AccessKeyId"],
                secret_access_key=credentials["SecretAccessKey"],
                session_token=credentials["SessionToken"],
            )
        except (KeyError, TypeError) as exc:
            raise ParseError(f"sts get-session-token returned no {exc} field.") from exc

    def list_image_tags(self, repository: str) -> List[str]:
        result = self.command_runner.run(
            self.command(
                "ecr",
                "list-images",
                "--repository-name",
                repository,
                json_output=True,
            )
        )
        payload = self._parse_json(result, "ecr list-images")
        image_ids = payload.get("imageIds") or []
        return [image["imageTag"] for image in image_ids if image.get("imageTag")]

    def get_parameter(self, name: str, decrypt: bool = True) -> str:
        args = ["--name", name]
        if decrypt:
            args.append("--with-decryption")
        result = self.command_runner.run(
            self.command("ssm", "get-parameter", *args, json_output=True),
            sensitive=True,
        )
        payload = self._parse_json(result, f"ssm get-parameter {name}", sensitive=True)
        try:
            return payload["Parameter"]["Value"]
        except (KeyError, TypeError) as exc:
            raise ParseError(f"ssm get-parameter {name} returned no Parameter.Value.") from exc

    def put_parameter(self, name: str, value: str, key_id: Optional[str] = None) -> ProcessResult:
        args = [
            "--name",
            name,
            "--value",
            value,
            "--type",
            "SecureString",
            "--overwrite",
        ]
        if key_id:
            args += ["--key-id", key_id]
        return self.command_runner.run(
            self.command("ssm", "put-parameter", *args, json_output=True),
            sensitive=True,
        )

    def s3_copy(self, source: str, destination: str, server_side_encryption: bool = False) -> ProcessResult:
        args = [source, destination]
        if server_side_encryption:
            args.append("--sse")
        return self.command_runner.run(self.command("s3", "cp", *args))

    def _parse_json(self, result: ProcessResult, label: str, sensitive: bool = False) -> Dict[str, Any]:
        try:
            payload = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            detail = "" if sensitive else f": {result.stdout.strip()[:200]}"
            raise ParseError(f"Could not parse JSON from {label}{detail}") from exc
        if not isinstance(payload, dict):
            raise ParseError(f"Unexpected JSON document from {label}.")
        return payload
