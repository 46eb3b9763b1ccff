"""Sync a ``.env.<environment>`` secrets file with an encrypted S3 bucket."""

import os
from typing import Optional

from .core import Workflow, console, logger
from .errors import ConfigurationError, DeployKitError
from .errors_catalog import actionable_error
from .models import SecretsConfig
from .services.aws_cli import AwsCliService

ACTIONS = ("get", "put")


class SecretsSync(Workflow):
    name = "secrets"

    def __init__(self, config: SecretsConfig, report_file: Optional[str] = None, command_runner=None):
        super().__init__(report_file=report_file, command_runner=command_runner)
        self.config = config
        if not config.bucket:
            raise ConfigurationError(
                actionable_error("missing_option", option="--bucket", key="bucket")
            )
        if not config.profile:
            raise ConfigurationError(
                actionable_error("missing_option", option="--profile", key="profile")
            )
        if config.action not in ACTIONS:
            raise ConfigurationError(f"Invalid action '{config.action}'. Use get or put.")

        # S3 is global; the profile alone picks the account.
        self.aws = AwsCliService(self.command_runner, logger=logger, profile=config.profile)

    def describe_target(self):
        return {
            "action": self.config.action,
            "bucket": self.config.bucket,
            "environment": self.config.environment,
        }

    def execute(self):
        if self.config.action == "put":
            self.put_secrets_file()
        else:
            self.get_secrets_file()

    def get_secrets_file(self):
        console.print(
            f"[green]~> Fetching {self.config.local_file} secrets file from {self.config.bucket}...[/green]"
        )
        result = self.aws.s3_copy(self.config.remote_uri, self.config.downloaded_file)
        if result.stdout.strip():
            console.print(result.stdout.strip(), highlight=False)
        console.print(f"[yellow]Saved {self.config.downloaded_file}[/yellow]")

    def put_secrets_file(self):
        if not os.path.isfile(self.config.local_file):
            raise DeployKitError(actionable_error("env_file_not_found", path=self.config.local_file))

        console.print(
            f"[green]~> Pushing {self.config.local_file} secrets file to {self.config.bucket}...[/green]"
        )
        result = self.aws.s3_copy(
            self.config.local_file,
            self.config.remote_uri,
            server_side_encryption=True,
        )
        if result.stdout.strip():
            console.print(result.stdout.strip(), highlight=False)
        console.print(f"[yellow]Uploaded {self.config.remote_uri}[/yellow]")
