import json

import pytest

from deploykit.errors import ProcessError
from deploykit.models import ProcessResult

ACCOUNT_ID = "123456789012"


class FakeCommandRunner:
    """Records commands and answers them by longest matching argument prefix."""

    def __init__(self, responses=None, failures=None):
        self.responses = dict(responses or {})
        self.failures = set(failures or [])
        self.calls = []

    def run(self, cmd, input_text=None, timeout=None, env=None, sensitive=False):
        self.calls.append(("run", list(cmd), {"input_text": input_text, "env": env}))
        return self._answer(cmd)

    def stream(self, cmd, fail_on_stderr=True, env=None):
        self.calls.append(("stream", list(cmd), {"fail_on_stderr": fail_on_stderr, "env": env}))
        return self._answer(cmd)

    @property
    def commands(self):
        return [cmd for _, cmd, _ in self.calls]

    def called(self, *prefix):
        return any(tuple(cmd[: len(prefix)]) == prefix for cmd in self.commands)

    def _answer(self, cmd):
        if self._match(cmd, self.failures) is not None:
            raise ProcessError(
                f"Command failed (1): {' '.join(cmd)}",
                args=cmd,
                returncode=1,
                stderr="boom",
            )
        prefix = self._match(cmd, self.responses)
        stdout = self.responses[prefix] if prefix is not None else ""
        return ProcessResult(args=list(cmd), returncode=0, stdout=stdout)

    @staticmethod
    def _match(cmd, prefixes):
        best = None
        for prefix in prefixes:
            if tuple(cmd[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        return best


def _registry_responses(account_id=ACCOUNT_ID, tags=("3", "7", "latest")):
    image_ids = [{"imageDigest": f"sha256:{index}", "imageTag": tag} for index, tag in enumerate(tags)]
    image_ids.append({"imageDigest": "sha256:untagged"})
    return {
        ("aws", "ecr", "get-login-password"): "registry-password\n",
        ("aws", "sts", "get-caller-identity"): json.dumps(
            {"Account": account_id, "UserId": "AIDA", "Arn": "arn:aws:iam::user/ci"}
        ),
        ("aws", "sts", "get-session-token"): json.dumps(
            {
                "Credentials": {
                    "AccessKeyId": "ASIATEMP",
                    "SecretAccessKey": "temp-secret",
                    "SessionToken": "temp-token",
                    "Expiration": "2026-10-18T12:00:00Z",
                }
            }
        ),
        ("aws", "ecr", "list-images"): json.dumps({"imageIds": image_ids}),
    }


@pytest.fixture
def fake_runner_factory():
    return FakeCommandRunner


@pytest.fixture
def registry_responses():
    return _registry_responses
