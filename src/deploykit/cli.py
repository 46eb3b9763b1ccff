import functools
import logging
import os

import click
from rich.logging import RichHandler

from . import __version__
from .build import ImageBuilder
from .deploy import ServiceDeployer
from .errors import DeployKitError
from .models import VERSION_SOURCES, ParameterConfig, RunConfig, SecretsConfig
from .parameter_sync import ParameterSync
from .secrets_sync import SecretsSync
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _resolve_account_id(cli_value, config):
    value = _resolve_option(cli_value, config, "account_id")
    return "" if value is None else str(value).strip()


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def common_options(func):
    @click.option(
        "--config",
        required=False,
        type=click.Path(),
        help="Path to a YAML configuration file. Defaults to .deploykit.yml if present.",
    )
    @click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
    @click.option("--log-file", type=click.Path(), help="Path to log file")
    @click.option(
        "--report-file",
        type=click.Path(),
        help="Write a JSON report of the run's steps to this path.",
    )
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)

    return wrapper


def _load_config(config):
    try:
        config_loader = ConfigLoader()
        return config_loader.load(config_loader.discover(config, os.getcwd()))
    except DeployKitError as exc:
        raise click.ClickException(str(exc)) from exc


def _configure_logging(config_values, verbose, log_file):
    logger = logging.getLogger("deploykit")
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _run_workflow(factory):
    try:
        workflow = factory()
    except DeployKitError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(workflow.run())


@click.group()
@click.version_option(__version__, prog_name="deploykit")
def main():
    """Sync environment secrets, build images and deploy them to ECS."""


@main.command()
@click.option("-a", "--account-id", help="AWS account needed to build, push, and deploy.")
@click.option("-f", "--dockerfile", help="Path of the Dockerfile to build (default: Dockerfile).")
@click.option("--context", "build_context", help="Docker build context (default: .).")
@click.option(
    "-e",
    "--environment",
    help="Environment the image is built for, e.g. staging or production (default: staging).",
)
@click.option("-i", "--image", help="Image to build, e.g. api or nginx (default: api).")
@click.option("-p", "--prefix", help="Project prefix for the local image name (default: default).")
@click.option("-r", "--region", help="AWS region of the registry (default: us-east-1).")
@click.option("--profile", help="AWS CLI profile to use.")
@click.option("-t", "--tag", help="Explicit image tag. Skips tag derivation.")
@click.option("--push", is_flag=True, default=None, help="Push the image after tagging it.")
@click.option(
    "--no-cache", is_flag=True, default=None, help="Build the image fresh, without the layer cache."
)
@click.option(
    "--version-source",
    type=click.Choice(VERSION_SOURCES),
    help="Where the next tag comes from: the registry's tags or the version ledger (default: registry).",
)
@click.option("--ledger-file", type=click.Path(), help="Version ledger path (default: versions.txt).")
@common_options
def build(
    account_id,
    dockerfile,
    build_context,
    environment,
    image,
    prefix,
    region,
    profile,
    tag,
    push,
    no_cache,
    version_source,
    ledger_file,
    config,
    verbose,
    log_file,
    report_file,
):
    """Build, tag and optionally push a docker image to ECR."""
    config_values = _load_config(config)
    _configure_logging(config_values, verbose, log_file)

    run_config = RunConfig(
        account_id=_resolve_account_id(account_id, config_values),
        environment=_resolve_option(environment, config_values, "environment", default="staging"),
        image=_resolve_option(image, config_values, "image", default="api"),
        region=_resolve_option(region, config_values, "region", default="us-east-1"),
        profile=_resolve_option(profile, config_values, "profile"),
        tag=tag,
        push=bool(_resolve_option(push, config_values, "push", default=False)),
        no_cache=bool(_resolve_option(no_cache, config_values, "no_cache", default=False)),
        dockerfile=_resolve_option(dockerfile, config_values, "dockerfile", default="Dockerfile"),
        context=_resolve_option(build_context, config_values, "context", default="."),
        prefix=_resolve_option(prefix, config_values, "prefix", default="default"),
        version_source=_resolve_option(
            version_source, config_values, "version_source", default="registry"
        ),
        ledger_file=_resolve_option(ledger_file, config_values, "ledger_file", default="versions.txt"),
    )
    report_file = _resolve_option(report_file, config_values, "report_file")

    _run_workflow(lambda: ImageBuilder(run_config, report_file=report_file))


@main.command()
@click.option("-a", "--account-id", help="AWS account needed to deploy.")
@click.option("-c", "--cluster", help="Name of the ECS cluster.")
@click.option("-d", "--task-definition", help="Name of the task definition to deploy.")
@click.option("-n", "--service-name", help="Name of the service to deploy.")
@click.option(
    "-e",
    "--environment",
    help="Environment whose repository holds the image (default: staging).",
)
@click.option("-i", "--image", help="Image to deploy (default: api).")
@click.option(
    "-o",
    "--timeout",
    type=int,
    help="Seconds to wait for the deploy before halting it (default: 300).",
)
@click.option("-r", "--region", help="AWS region where ECS and ECR are in use (default: us-east-1).")
@click.option("--profile", help="AWS CLI profile to use.")
@click.option("-t", "--tag", help="Image tag to deploy. Prompts for one when omitted.")
@click.option("--deploy-script", help="Path to the ecs-deploy helper (default: ecs-deploy).")
@common_options
def deploy(
    account_id,
    cluster,
    task_definition,
    service_name,
    environment,
    image,
    timeout,
    region,
    profile,
    tag,
    deploy_script,
    config,
    verbose,
    log_file,
    report_file,
):
    """Deploy an image tag to an ECS service or task definition."""
    config_values = _load_config(config)
    _configure_logging(config_values, verbose, log_file)

    run_config = RunConfig(
        account_id=_resolve_account_id(account_id, config_values),
        environment=_resolve_option(environment, config_values, "environment", default="staging"),
        image=_resolve_option(image, config_values, "image", default="api"),
        region=_resolve_option(region, config_values, "region", default="us-east-1"),
        profile=_resolve_option(profile, config_values, "profile"),
        tag=tag,
        cluster=_resolve_option(cluster, config_values, "cluster"),
        service_name=_resolve_option(service_name, config_values, "service_name"),
        task_definition=_resolve_option(task_definition, config_values, "task_definition"),
        timeout=int(_resolve_option(timeout, config_values, "timeout", default=300)),
        deploy_script=_resolve_option(
            deploy_script, config_values, "deploy_script", default="ecs-deploy"
        ),
    )
    report_file = _resolve_option(report_file, config_values, "report_file")

    _run_workflow(lambda: ServiceDeployer(run_config, report_file=report_file))


@main.command()
@click.option(
    "-a",
    "--action",
    type=click.Choice(["get", "put"]),
    default="get",
    show_default=True,
    help="Download (get) or upload (put) the secrets file.",
)
@click.option("-b", "--bucket", help="S3 bucket that keeps the encrypted environment files.")
@click.option(
    "-e",
    "--environment",
    help="Environment to sync, e.g. staging, beta or production (default: staging).",
)
@click.option("-p", "--profile", help="AWS CLI profile used to sync with S3.")
@common_options
def secrets(action, bucket, environment, profile, config, verbose, log_file, report_file):
    """Sync a .env.<environment> file with an encrypted S3 bucket."""
    config_values = _load_config(config)
    _configure_logging(config_values, verbose, log_file)

    secrets_config = SecretsConfig(
        action=action,
        bucket=_resolve_option(bucket, config_values, "bucket", default=""),
        environment=_resolve_option(environment, config_values, "environment", default="staging"),
        profile=_resolve_option(profile, config_values, "profile", default=""),
    )
    report_file = _resolve_option(report_file, config_values, "report_file")

    _run_workflow(lambda: SecretsSync(secrets_config, report_file=report_file))


@main.command()
@click.option(
    "-a",
    "--action",
    type=click.Choice(["get", "put"]),
    default="get",
    show_default=True,
    help="Download (get) or upload (put) the environment variables.",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Print the variables instead of writing them to disk.",
)
@click.option(
    "-e",
    "--environment",
    help="Environment to sync, e.g. staging or production (default: staging).",
)
@click.option("-k", "--key-id", help="KMS key id or alias used to encrypt uploaded parameters.")
@click.option(
    "-l",
    "--location",
    type=click.Path(),
    help="File the exported variables are appended to (default: /etc/profile.d/env.sh).",
)
@click.option("-p", "--profile", help="AWS CLI profile (default: default).")
@click.option("-r", "--region", help="AWS region (default: us-east-1).")
@common_options
def params(
    action,
    debug,
    environment,
    key_id,
    location,
    profile,
    region,
    config,
    verbose,
    log_file,
    report_file,
):
    """Sync .env variables with AWS SSM Parameter Store."""
    config_values = _load_config(config)
    _configure_logging(config_values, verbose, log_file)

    parameter_config = ParameterConfig(
        action=action,
        debug=debug,
        environment=_resolve_option(environment, config_values, "environment", default="staging"),
        key_id=_resolve_option(key_id, config_values, "key_id"),
        location=_resolve_option(
            location, config_values, "location", default="/etc/profile.d/env.sh"
        ),
        profile=_resolve_option(profile, config_values, "profile", default="default"),
        region=_resolve_option(region, config_values, "region", default="us-east-1"),
    )
    report_file = _resolve_option(report_file, config_values, "report_file")

    _run_workflow(lambda: ParameterSync(parameter_config, report_file=report_file))


if __name__ == "__main__":
    main()
