"""Actionable error catalog for deploykit."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "missing_option": {
        "what": "Missing required option '{option}'.",
        "next": "Pass `{option}` on the command line or set `{key}` in the config file.",
    },
    "missing_deploy_target": {
        "what": "No deploy target was given.",
        "next": "Pass either `--service-name` or `--task-definition`.",
    },
    "account_mismatch": {
        "what": "Your AWS credentials belong to account {current} but the run targets {expected}.",
        "next": "Switch AWS credentials or profile and run again.",
    },
    "no_image_tags": {
        "what": "Repository {repository} has no tagged images.",
        "next": "Build and push an image first, or pass `--tag` explicitly.",
    },
    "env_file_not_found": {
        "what": "Environment file not found: {path}",
        "next": "Create the file or choose another `--environment`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
