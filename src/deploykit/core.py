import logging
from typing import Any, Dict, List, Optional

from rich.console import Console

from .errors import ConfigurationError, DeployKitError
from .errors_catalog import actionable_error
from .models import RunConfig, StepContext
from .pipeline import PipelineDriver, Step
from .services.aws_cli import AwsCliService
from .services.command_runner import CommandRunner
from .services.docker_cli import DockerCliService
from .services.report import RunReportService

console = Console()
logger = logging.getLogger("deploykit")


class Workflow:
    """Base class for one-shot workflows: run once, report, return an exit code."""

    name = "workflow"

    def __init__(self, report_file: Optional[str] = None, command_runner=None):
        self.console = console
        self.command_runner = command_runner or CommandRunner(logger=logger, console=console)
        self.report_service = RunReportService(report_file=report_file, logger=logger)

    def describe_target(self) -> Dict[str, Any]:
        return {}

    def execute(self):
        raise NotImplementedError

    def run(self) -> int:
        status = "failed"
        error: Optional[str] = None

        try:
            logger.info("Starting %s...", self.name)
            self.report_service.start_run(self.name, self.describe_target())
            self.execute()
            status = "success"
            return 0

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            status = "aborted"
            error = "Operation cancelled by user."
            return 1
        except DeployKitError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            error = str(exc)
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            error = str(exc)
            return 1
        finally:
            self.report_service.finalize(status, error=error)


class RegistryWorkflow(Workflow):
    """Shared steps for workflows that talk to the container registry."""

    def __init__(self, config: RunConfig, report_file: Optional[str] = None, command_runner=None):
        super().__init__(report_file=report_file, command_runner=command_runner)
        self.config = config
        self._validate_config()

        self.context = StepContext()
        self.aws = AwsCliService(
            self.command_runner,
            logger=logger,
            region=config.region,
            profile=config.profile,
        )
        self.docker = DockerCliService(self.command_runner, logger=logger)

    def _validate_config(self):
        if not self.config.account_id:
            raise ConfigurationError(
                actionable_error("missing_option", option="--account-id", key="account_id")
            )

    def describe_target(self) -> Dict[str, Any]:
        return {
            "account_id": self.config.account_id,
            "region": self.config.region,
            "environment": self.config.environment,
            "image": self.config.image,
        }

    def build_steps(self) -> List[Step]:
        raise NotImplementedError

    def execute(self):
        if self.config.tag:
            self.context.set("image_tag", self.config.tag)
            self.report_service.set_image_tag(self.config.tag)

        result = PipelineDriver(self.build_steps(), report_service=self.report_service).run(
            self.context
        )

        failed = result.failed_step
        if failed is None:
            return
        if isinstance(failed.error, DeployKitError):
            raise DeployKitError(f"Step '{failed.name}' failed. {failed.error}") from failed.error
        raise failed.error

    def login_to_registry(self, context: StepContext):
        console.print("[green]~> Logging in to AWS ECR[/green]")
        password = self.aws.get_login_password()
        self.docker.login(self.config.registry_host, password)
        console.print(f"[yellow]Logged in to {self.config.registry_host}[/yellow]")

    def verify_account(self, context: StepContext):
        console.print("[green]~> Getting AWS Account ID[/green]")
        current_account = self.aws.get_caller_account()
        context.set("account_id", current_account)
        console.print(f"[yellow]Your current AWS Account ID is {current_account}[/yellow]")

        if current_account != self.config.account_id:
            raise DeployKitError(
                actionable_error(
                    "account_mismatch",
                    current=current_account,
                    expected=self.config.account_id,
                )
            )
        console.print("[cyan]Excellent! AWS credentials are valid.[/cyan]")
