"""
deploykit - AWS parameter, secret, image build and ECS deploy workflows
"""

__version__ = "1.0.0"

from .errors import ConfigurationError, DeployKitError, ParseError, ProcessError

__all__ = ["ConfigurationError", "DeployKitError", "ParseError", "ProcessError"]
