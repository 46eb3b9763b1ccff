"""Docker CLI adapter for deploykit."""

import os
from typing import Dict, List, Optional

from deploykit.models import ProcessResult


class DockerCliService:
    """Runs docker login/build/tag/push.

    Build and push output is streamed to the console; docker reports progress
    on stderr, so these commands are judged by exit code alone.
    """

    def __init__(self, command_runner, logger):
        self.command_runner = command_runner
        self.logger = logger

    def login(self, registry: str, password: str) -> ProcessResult:
        return self.command_runner.run(
            ["docker", "login", "--username", "AWS", "--password-stdin", registry],
            input_text=password,
        )

    def build_command(
        self,
        image: str,
        dockerfile: str,
        context: str,
        build_args: List[str],
        no_cache: bool = False,
    ) -> List[str]:
        cmd = ["docker", "build", "-t", image]
        for name in build_args:
            cmd += ["--build-arg", name]
        cmd += ["-f", dockerfile]
        if no_cache:
            cmd.append("--no-cache")
        cmd.append(context)
        return cmd

    def build(
        self,
        image: str,
        dockerfile: str,
        context: str,
        build_env: Dict[str, str],
        no_cache: bool = False,
    ) -> ProcessResult:
        """Build ``image``; each ``build_env`` key becomes a ``--build-arg``.

        Values travel through the process environment so that credentials
        never appear in the argument list.
        """
        cmd = self.build_command(image, dockerfile, context, sorted(build_env), no_cache=no_cache)
        self.logger.info("Running: %s", " ".join(cmd))
        return self.command_runner.stream(cmd, fail_on_stderr=False, env=self._environment(build_env))

    def tag(self, source: str, target: str) -> ProcessResult:
        return self.command_runner.stream(["docker", "tag", source, target], fail_on_stderr=False)

    def push(self, image: str) -> ProcessResult:
        return self.command_runner.stream(["docker", "push", image], fail_on_stderr=False)

    @staticmethod
    def _environment(extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(extra or {})
        return env
