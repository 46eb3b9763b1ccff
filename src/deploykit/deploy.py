"""Service deploy pipeline: select an image tag and hand it to ecs-deploy."""

from typing import Callable, List, Optional

import click

from .core import RegistryWorkflow, console, logger
from .errors import ConfigurationError, DeployKitError
from .errors_catalog import actionable_error
from .models import RunConfig, StepContext
from .pipeline import Step
from .services.versioning import coerce_tag


def order_tags(tags: List[str]) -> List[str]:
    """Highest numeric tag first; non-numeric tags last, alphabetically."""
    return sorted(set(tags), key=lambda tag: (-coerce_tag(tag), tag))


class ServiceDeployer(RegistryWorkflow):
    name = "deploy"

    def __init__(
        self,
        config: RunConfig,
        report_file: Optional[str] = None,
        command_runner=None,
        prompt: Optional[Callable] = None,
    ):
        super().__init__(config, report_file=report_file, command_runner=command_runner)
        self.prompt = prompt or click.prompt

    def _validate_config(self):
        super()._validate_config()
        if not self.config.cluster:
            raise ConfigurationError(
                actionable_error("missing_option", option="--cluster", key="cluster")
            )
        if not self.config.service_name and not self.config.task_definition:
            raise ConfigurationError(actionable_error("missing_deploy_target"))

    def describe_target(self):
        target = super().describe_target()
        target.update(
            {
                "cluster": self.config.cluster,
                "service_name": self.config.service_name,
                "task_definition": self.config.task_definition,
            }
        )
        return target

    def build_steps(self) -> List[Step]:
        by_task_definition = bool(self.config.task_definition)
        return [
            Step("login_to_registry", self.login_to_registry),
            Step("verify_account", self.verify_account),
            Step("list_image_tags", self.list_image_tags, include=not self.config.tag),
            Step("select_image_tag", self.select_image_tag, include=not self.config.tag),
            Step("deploy_service", self.deploy_service, include=not by_task_definition),
            Step("deploy_task_definition", self.deploy_task_definition, include=by_task_definition),
        ]

    def list_image_tags(self, context: StepContext):
        console.print("[green]~> Listing image tags/versions[/green]")
        tags = order_tags(self.aws.list_image_tags(self.config.repository_name))
        if not tags:
            raise DeployKitError(
                actionable_error("no_image_tags", repository=self.config.repository_name)
            )
        context.set("available_tags", tags)

    def select_image_tag(self, context: StepContext):
        tags = context.require("available_tags")
        selected = self.prompt(
            "Which version do you want to deploy?",
            type=click.Choice(tags),
            default=tags[0],
        )
        context.set("image_tag", str(selected))
        self.report_service.set_image_tag(str(selected))
        console.print(f"[yellow]Selected version {selected} to deploy[/yellow]")

    def deploy_command(self, target_flag: str, target: str, tag: str) -> List[str]:
        return [
            self.config.deploy_script,
            "--cluster",
            self.config.cluster,
            target_flag,
            target,
            "--image",
            self.config.remote_image(tag),
            "--timeout",
            str(self.config.timeout),
        ]

    def deploy_service(self, context: StepContext):
        self._deploy(context, "--service-name", self.config.service_name)

    def deploy_task_definition(self, context: StepContext):
        if self.config.service_name:
            logger.warning(
                "Both a service and a task definition were given; deploying task definition %s.",
                self.config.task_definition,
            )
        self._deploy(context, "--task-definition", self.config.task_definition)

    def _deploy(self, context: StepContext, target_flag: str, target: str):
        cmd = self.deploy_command(target_flag, target, context.require("image_tag"))
        console.print(f"[green]Running: {' '.join(cmd)}[/green]")
        logger.info("Deploying %s to cluster %s", target, self.config.cluster)
        self.command_runner.stream(cmd)
        console.print(f"[blue]Successfully deployed {target}.[/blue]")
