"""Shared domain models for deploykit."""

from dataclasses import dataclass, field, fields
from typing import Any, List, Optional

from deploykit.errors import PipelineError

VERSION_SOURCES = ("registry", "ledger")


@dataclass(frozen=True)
class RunConfig:
    """Resolved parameters for a build or deploy run."""

    account_id: str
    environment: str = "staging"
    image: str = "api"
    region: str = "us-east-1"
    profile: Optional[str] = None
    tag: Optional[str] = None
    push: bool = False
    no_cache: bool = False
    dockerfile: str = "Dockerfile"
    context: str = "."
    prefix: str = "default"
    version_source: str = "registry"
    ledger_file: str = "versions.txt"
    cluster: Optional[str] = None
    service_name: Optional[str] = None
    task_definition: Optional[str] = None
    timeout: int = 300
    deploy_script: str = "ecs-deploy"

    @property
    def repository_name(self) -> str:
        return f"{self.environment}/{self.image}"

    @property
    def registry_host(self) -> str:
        return f"{self.account_id}.dkr.ecr.{self.region}.amazonaws.com"

    def local_image(self, tag: str) -> str:
        return f"{self.prefix}/{self.repository_name}:{tag}"

    def remote_image(self, tag: str) -> str:
        return f"{self.registry_host}/{self.repository_name}:{tag}"


@dataclass(frozen=True)
class SecretsConfig:
    bucket: str
    profile: str
    action: str = "get"
    environment: str = "staging"

    @property
    def local_file(self) -> str:
        return f".env.{self.environment}"

    @property
    def downloaded_file(self) -> str:
        return f"s3.env.{self.environment}"

    @property
    def remote_uri(self) -> str:
        return f"s3://{self.bucket}/.env.{self.environment}"


@dataclass(frozen=True)
class ParameterConfig:
    action: str = "get"
    environment: str = "staging"
    key_id: Optional[str] = None
    location: str = "/etc/profile.d/env.sh"
    profile: str = "default"
    region: str = "us-east-1"
    debug: bool = False
    get_interval: float = 0.2
    put_interval: float = 0.5

    @property
    def keys_parameter(self) -> str:
        return f"{self.environment}.environment_keys"

    @property
    def env_file(self) -> str:
        if self.environment == "development":
            return ".env"
        return f".env.{self.environment}"

    def parameter_name(self, key: str) -> str:
        return f"{self.environment}.{key}"


@dataclass(frozen=True)
class TemporaryCredentials:
    access_key_id: str
    secret_access_key: str
    session_token: str


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one external command."""

    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    signal: Optional[int] = None


@dataclass(frozen=True)
class VersionLedgerEntry:
    name: str
    version: int

    def to_line(self) -> str:
        return f"{self.name}:{self.version}"


@dataclass
class StepContext:
    """State produced by one pipeline step and consumed by later ones.

    Every field is write-once: use ``set`` to publish a value and ``require``
    to read a value that an earlier step must have produced.
    """

    account_id: Optional[str] = None
    credentials: Optional[TemporaryCredentials] = None
    image_tag: Optional[str] = None
    available_tags: Optional[List[str]] = None
    _names: tuple = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self):
        self._names = tuple(f.name for f in fields(self) if not f.name.startswith("_"))

    def set(self, name: str, value: Any):
        if name not in self._names:
            raise PipelineError(f"Unknown step context field: {name}")
        if getattr(self, name) is not None:
            raise PipelineError(f"Step context field '{name}' was already set.")
        setattr(self, name, value)

    def require(self, name: str) -> Any:
        if name not in self._names:
            raise PipelineError(f"Unknown step context field: {name}")
        value = getattr(self, name)
        if value is None:
            raise PipelineError(f"Step context field '{name}' has not been produced yet.")
        return value
