"""Sync ``.env`` variables with AWS SSM Parameter Store."""

import json
import os
import shlex
import time
from typing import Callable, List, Optional, Tuple

from rich.markup import escape

from .core import Workflow, console, logger
from .errors import ConfigurationError, DeployKitError, ParseError
from .errors_catalog import actionable_error
from .models import ParameterConfig
from .services.aws_cli import AwsCliService

ACTIONS = ("get", "put")
LOCATION_MODE = 0o755


def parse_env_lines(lines: List[str]) -> List[Tuple[str, str]]:
    """Return ``(key, value)`` pairs, skipping blank lines and ``#`` comments.

    Only the first ``=`` separates key from value.
    """
    variables = []
    for line in lines:
        line = line.rstrip("\r\n")
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key:
            variables.append((key, value))
    return variables


def export_line(key: str, value: str) -> str:
    return f"export {key}={shlex.quote(value)}\n"


class ParameterSync(Workflow):
    name = "params"

    def __init__(
        self,
        config: ParameterConfig,
        report_file: Optional[str] = None,
        command_runner=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(report_file=report_file, command_runner=command_runner)
        self.config = config
        self.sleep = sleep
        if config.action not in ACTIONS:
            raise ConfigurationError(f"Invalid action '{config.action}'. Use get or put.")
        if config.action == "put" and not config.profile:
            # Uploads must target an explicit account.
            raise ConfigurationError(
                actionable_error("missing_option", option="--profile", key="profile")
            )

        self.aws = AwsCliService(
            self.command_runner,
            logger=logger,
            region=config.region,
            profile=config.profile,
        )

    def describe_target(self):
        return {
            "action": self.config.action,
            "environment": self.config.environment,
            "region": self.config.region,
        }

    def execute(self):
        if self.config.action == "put":
            self.put_parameters()
        else:
            self.get_parameters()

    def fetch_keys(self) -> List[str]:
        console.print(
            f"~> Fetching [{self.config.environment}] environment keys...", style="green", markup=False
        )
        raw_keys = self.aws.get_parameter(self.config.keys_parameter)
        try:
            keys = json.loads(raw_keys)
        except json.JSONDecodeError as exc:
            raise ParseError(f"{self.config.keys_parameter} is not a JSON list: {exc}") from exc
        if not isinstance(keys, list) or not all(isinstance(key, str) for key in keys):
            raise ParseError(f"{self.config.keys_parameter} must hold a JSON list of key names.")
        console.print(f"KEYS: {', '.join(keys)}", markup=False, highlight=False)
        return keys

    def get_parameters(self):
        keys = self.fetch_keys()

        console.print("[green]~> Fetching individual variables...[/green]")
        if not self.config.debug:
            self._ensure_location()

        failures = []
        for index, key in enumerate(keys):
            if index:
                self.sleep(self.config.get_interval)
            try:
                value = self.aws.get_parameter(self.config.parameter_name(key))
            except DeployKitError as exc:
                logger.error("Could not fetch %s: %s", self.config.parameter_name(key), exc)
                failures.append(key)
                continue

            if self.config.debug:
                console.print(f"[blue]{escape(key)}[/blue]=[cyan]{escape(value)}[/cyan]", highlight=False)
                continue

            with open(self.config.location, "a", encoding="utf-8") as file_obj:
                file_obj.write(export_line(key, value))
            console.print(f"({index + 1}/{len(keys)}) Downloaded [cyan]{escape(key)}[/cyan]")

        self._raise_for_failures("fetch", failures)

    def put_parameters(self):
        env_file = self.config.env_file
        if not os.path.isfile(env_file):
            raise DeployKitError(actionable_error("env_file_not_found", path=env_file))

        with open(env_file, "r", encoding="utf-8") as file_obj:
            variables = parse_env_lines(file_obj.readlines())
        keys = [key for key, _ in variables]

        console.print(
            f"~> Uploading [{self.config.environment}] environment keys...", style="green", markup=False
        )
        self.aws.put_parameter(
            self.config.keys_parameter,
            json.dumps(keys),
            key_id=self.config.key_id,
        )
        console.print(
            f"UPLOADED: {self.config.keys_parameter}: {json.dumps(keys)}", markup=False, highlight=False
        )

        console.print("[green]~> Uploading individual variables...[/green]")
        failures = []
        for index, (key, value) in enumerate(variables):
            if index:
                self.sleep(self.config.put_interval)
            name = self.config.parameter_name(key)
            try:
                self.aws.put_parameter(name, value, key_id=self.config.key_id)
            except DeployKitError as exc:
                logger.error("Error uploading '%s' to Parameter Store: %s", name, exc)
                failures.append(key)
                continue
            console.print(f"UPLOADED: [cyan]{escape(key)}[/cyan]")

        self._raise_for_failures("upload", failures)

    def _ensure_location(self):
        if os.path.exists(self.config.location):
            return
        directory = os.path.dirname(self.config.location)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.config.location, "w", encoding="utf-8"):
            pass
        os.chmod(self.config.location, LOCATION_MODE)

    @staticmethod
    def _raise_for_failures(verb: str, failures: List[str]):
        if failures:
            raise DeployKitError(
                f"Could not {verb} {len(failures)} parameter(s): {', '.join(failures)}"
            )
