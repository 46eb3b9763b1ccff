"""Image build pipeline: credentials, tag derivation, build, tag, push."""

from typing import List, Optional

from .core import RegistryWorkflow, console, logger
from .errors import ConfigurationError
from .models import VERSION_SOURCES, RunConfig, StepContext
from .pipeline import Step
from .services.ledger import VersionLedger
from .services.versioning import is_numeric_tag, next_version_from_tags


class ImageBuilder(RegistryWorkflow):
    name = "build"

    def __init__(self, config: RunConfig, report_file: Optional[str] = None, command_runner=None):
        super().__init__(config, report_file=report_file, command_runner=command_runner)
        self.ledger = VersionLedger(config.ledger_file, logger=logger)

    def _validate_config(self):
        super()._validate_config()
        if self.config.version_source not in VERSION_SOURCES:
            raise ConfigurationError(
                f"Invalid version source '{self.config.version_source}'. "
                f"Supported sources: {', '.join(VERSION_SOURCES)}"
            )

    def build_steps(self) -> List[Step]:
        return [
            Step("login_to_registry", self.login_to_registry),
            Step("verify_account", self.verify_account),
            Step("create_temporary_credentials", self.create_temporary_credentials),
            Step("derive_image_tag", self.derive_image_tag, include=not self.config.tag),
            Step("build_image", self.build_image),
            Step("tag_image", self.tag_image),
            Step("push_image", self.push_image, include=self.config.push),
            Step(
                "record_version",
                self.record_version,
                include=self.config.version_source == "ledger",
            ),
        ]

    def create_temporary_credentials(self, context: StepContext):
        console.print("[green]~> Creating temporary AWS credentials for the docker build[/green]")
        context.set("credentials", self.aws.get_session_token())
        console.print("[yellow]Temporary AWS credentials have been generated.[/yellow]")

    def derive_image_tag(self, context: StepContext):
        console.print("[green]~> Generating docker image tag[/green]")
        if self.config.version_source == "ledger":
            version = self.ledger.next_version(self.config.environment, self.config.image)
        else:
            tags = self.aws.list_image_tags(self.config.repository_name)
            logger.debug("Existing tags for %s: %s", self.config.repository_name, tags)
            version = next_version_from_tags(tags)

        context.set("image_tag", str(version))
        self.report_service.set_image_tag(str(version))
        console.print(f"[cyan]Next image tag is {version}[/cyan]")

    def build_image(self, context: StepContext):
        console.print("[green]~> Building docker image[/green]")
        credentials = context.require("credentials")
        tag = context.require("image_tag")
        self.docker.build(
            image=self.config.local_image(tag),
            dockerfile=self.config.dockerfile,
            context=self.config.context,
            build_env={
                "AWS_ACCESS_KEY_ID": credentials.access_key_id,
                "AWS_SECRET_ACCESS_KEY": credentials.secret_access_key,
                "AWS_SESSION_TOKEN": credentials.session_token,
                "ENVIRONMENT": self.config.environment,
            },
            no_cache=self.config.no_cache,
        )
        console.print("[blue]Successfully built docker image.[/blue]")

    def tag_image(self, context: StepContext):
        console.print("[green]~> Tagging docker image[/green]")
        tag = context.require("image_tag")
        self.docker.tag(self.config.local_image(tag), self.config.remote_image(tag))
        console.print(f"[yellow]Tagged {self.config.remote_image(tag)}[/yellow]")

    def push_image(self, context: StepContext):
        console.print("[green]~> Pushing docker image[/green]")
        tag = context.require("image_tag")
        self.docker.push(self.config.remote_image(tag))
        console.print("[yellow]Successfully pushed docker image.[/yellow]")

    def record_version(self, context: StepContext):
        tag = context.require("image_tag")
        if not is_numeric_tag(tag):
            logger.warning("Tag '%s' is not numeric; the version ledger was not updated.", tag)
            return
        self.ledger.record(self.config.environment, self.config.image, int(tag))
        console.print(f"[yellow]Recorded {self.config.repository_name}:{tag} in {self.ledger.ledger_file}[/yellow]")
