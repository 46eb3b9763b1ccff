"""Domain errors for deploykit."""

from typing import List, Optional


class DeployKitError(RuntimeError):
    """Raised when a workflow cannot continue safely."""


class ConfigurationError(DeployKitError):
    """Raised when a mandatory option is missing or invalid."""


class ParseError(DeployKitError):
    """Raised when command output or a ledger file cannot be parsed."""


class PipelineError(DeployKitError):
    """Raised when a step reads or writes the step context out of order."""


class ProcessError(DeployKitError):
    """Raised when an external command fails."""

    def __init__(
        self,
        message: str,
        args: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.cmd = list(args or [])
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
