"""Subprocess execution service for deploykit."""

import subprocess
import threading
from typing import Dict, List, Optional

from rich.markup import escape

from deploykit.errors import ProcessError
from deploykit.models import ProcessResult


class CommandRunner:
    """Runs external commands in buffered or streamed mode."""

    def __init__(self, logger, console, default_timeout: Optional[float] = None):
        self.logger = logger
        self.console = console
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        input_text: Optional[str] = None,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
        sensitive: bool = False,
    ) -> ProcessResult:
        """Run a command to completion and capture its output.

        ``sensitive`` keeps the arguments and captured stdout out of logs and
        error messages.
        """
        cmd_str = " ".join(cmd[:3]) + " ..." if sensitive else " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            completed = subprocess.run(
                cmd,
                text=True,
                capture_output=True,
                input=input_text,
                timeout=effective_timeout,
                env=env,
            )
        except FileNotFoundError as exc:
            raise ProcessError(
                f"Required command not found: {cmd[0]}. Please install it and try again.",
                args=cmd,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise ProcessError(
                f"Command timed out after {effective_timeout}s: {cmd_str}", args=cmd
            ) from exc

        result = ProcessResult(
            args=list(cmd),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            signal=-completed.returncode if completed.returncode < 0 else None,
        )

        if result.stdout and not sensitive:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode != 0:
            raise ProcessError(
                self._failure_message(cmd_str, result, include_stdout=not sensitive),
                args=result.args,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        return result

    def stream(
        self,
        cmd: List[str],
        fail_on_stderr: bool = True,
        env: Optional[Dict[str, str]] = None,
    ) -> ProcessResult:
        """Run a command, echoing stdout live and collecting stderr.

        Fails on a non-zero exit code and, when ``fail_on_stderr`` is set,
        on any stderr text even if the exit code is zero.
        """
        cmd_str = " ".join(cmd)
        self.logger.debug("Streaming: %s", cmd_str)

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
                env=env,
            )
        except FileNotFoundError as exc:
            raise ProcessError(
                f"Required command not found: {cmd[0]}. Please install it and try again.",
                args=cmd,
            ) from exc

        stderr_lines: List[str] = []
        reader = threading.Thread(
            target=self._collect_stderr,
            args=(process.stderr, stderr_lines),
            daemon=True,
        )
        reader.start()

        stdout_lines: List[str] = []
        for line in process.stdout:
            stdout_lines.append(line)
            self.console.out(line.rstrip("\n"), highlight=False)

        returncode = process.wait()
        reader.join()

        result = ProcessResult(
            args=list(cmd),
            returncode=returncode,
            stdout="".join(stdout_lines),
            stderr="".join(stderr_lines),
            signal=-returncode if returncode < 0 else None,
        )

        if returncode != 0 or (fail_on_stderr and result.stderr.strip()):
            raise ProcessError(
                self._failure_message(cmd_str, result, include_stdout=False),
                args=result.args,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        return result

    def _collect_stderr(self, pipe, sink: List[str]):
        for line in pipe:
            sink.append(line)
            self.console.print(f"[red]stderr: {escape(line.rstrip())}[/red]", highlight=False)

    @staticmethod
    def _failure_message(cmd_str: str, result: ProcessResult, include_stdout: bool = True) -> str:
        if result.signal:
            message = f"Command terminated by signal {result.signal}: {cmd_str}"
        elif result.returncode == 0:
            message = f"Command reported errors on stderr: {cmd_str}"
        else:
            message = f"Command failed ({result.returncode}): {cmd_str}"
        stderr = result.stderr.strip()
        stdout = result.stdout.strip()
        if stderr:
            message = f"{message}\nstderr: {stderr}"
        if stdout and include_stdout:
            message = f"{message}\nstdout: {stdout}"
        return message
