"""Configuration loader for deploykit."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from deploykit.errors import ConfigurationError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    DEFAULT_FILE_NAME = ".deploykit.yml"

    SUPPORTED_KEYS = {
        "account_id",
        "environment",
        "image",
        "region",
        "profile",
        "dockerfile",
        "context",
        "prefix",
        "push",
        "no_cache",
        "version_source",
        "ledger_file",
        "cluster",
        "service_name",
        "task_definition",
        "timeout",
        "deploy_script",
        "bucket",
        "key_id",
        "location",
        "verbose",
        "log_file",
        "report_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigurationError(f"Unknown configuration keys: {unknown_list}")

        account_id = parsed.get("account_id")
        if account_id is not None and not isinstance(account_id, str):
            # YAML reads unquoted ids as ints, and leading-zero ids as octal.
            raise ConfigurationError(
                f"account_id in '{config_path}' must be a quoted string, e.g. account_id: '012345678901'."
            )

        return parsed

    def discover(self, config_path: Optional[str], cwd: str) -> Optional[str]:
        """Return the explicit config path, or the default file in ``cwd`` when present."""
        if config_path:
            return config_path
        default_path = Path(cwd) / self.DEFAULT_FILE_NAME
        if default_path.exists():
            return str(default_path)
        return None
