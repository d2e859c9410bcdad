"""Initialize a local repository and push its first commit to a new remote."""

from __future__ import annotations

import base64
import logging
import subprocess
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from createapp.errors import (
    BootstrapCancelledError,
    NothingToCommitError,
    PushRejectedError,
    RemoteExistsError,
    ToolInvocationError,
)
from createapp.models import BootstrapResult

logger = logging.getLogger(__name__)

STEPS = ("init", "remote-add", "stage-all", "commit", "push")
REMOTE_NAME = "origin"

_PUSH_REJECTION_MARKERS = (
    "[rejected]",
    "non-fast-forward",
    "fetch first",
    "authentication failed",
    "permission denied",
    "permission to",
    "403",
    "401",
    "could not read username",
    "invalid username or password",
)


@dataclass(frozen=True, slots=True)
class CommandResult:
    returncode: int
    output: str


Runner = Callable[[Sequence[str], Path], CommandResult]


def subprocess_runner(timeout: float = 120.0) -> Runner:
    def run(args: Sequence[str], cwd: Path) -> CommandResult:
        proc = subprocess.run(
            list(args),
            cwd=str(cwd),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
            check=False,
        )
        return CommandResult(returncode=proc.returncode, output=proc.stdout or "")

    return run


def _basic_auth_header(username: str, token: str) -> str:
    raw = f"{username}:{token}".encode()
    return f"Authorization: Basic {base64.b64encode(raw).decode('ascii')}"


class LocalRepoBootstrapper:
    """Run init, remote-add, stage-all, commit and push, stopping at the first failure.

    The remote repository must already exist. Nothing is rolled back on failure.
    """

    def __init__(
        self,
        *,
        git_bin: str = "git",
        commit_message: str = "Initial commit",
        author_email: str = "create-app@users.noreply.github.com",
        push_username: str = "Create-App",
        runner: Runner | None = None,
    ) -> None:
        self.git_bin = git_bin
        self.commit_message = commit_message
        self.author_email = author_email
        self.push_username = push_username
        self._runner = runner or subprocess_runner()

    def _git(
        self, step: str, args: Sequence[str], cwd: Path, result: BootstrapResult
    ) -> CommandResult:
        command = [self.git_bin, *args]
        try:
            return self._runner(command, cwd)
        except FileNotFoundError as exc:
            raise ToolInvocationError(
                f"git executable not found: {self.git_bin}",
                step=step,
                output=str(exc),
                result=result,
            ) from exc
        except (OSError, subprocess.SubprocessError) as exc:
            raise ToolInvocationError(
                f"git {args[0]} could not run: {exc}", step=step, output=str(exc), result=result
            ) from exc

    def _checked(self, step: str, args: Sequence[str], cwd: Path, result: BootstrapResult) -> str:
        proc = self._git(step, args, cwd, result)
        if proc.returncode != 0:
            raise ToolInvocationError(
                f"git {args[0]} failed with exit code {proc.returncode}",
                step=step,
                output=proc.output.strip(),
                result=result,
            )
        return proc.output

    def run(
        self,
        directory: str | Path,
        remote_url: str,
        token: str,
        author_name: str,
        *,
        cancel: threading.Event | None = None,
        record: BootstrapResult | None = None,
    ) -> BootstrapResult:
        """Run every step in order and return the completed record.

        Pass ``record`` to keep the partial record visible to the caller when the
        run is interrupted by something other than a ``BootstrapError``.
        """
        cwd = Path(directory).expanduser()
        result = record if record is not None else BootstrapResult()

        def checkpoint(step: str) -> None:
            if cancel is not None and cancel.is_set():
                raise BootstrapCancelledError(
                    f"cancelled before {step}", step=step, result=result
                )
            logger.info("Bootstrap step: %s", step)

        checkpoint("init")
        try:
            cwd.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ToolInvocationError(
                f"cannot create {cwd}: {exc}", step="init", output=str(exc), result=result
            ) from exc
        result.record("init", self._checked("init", ["init"], cwd, result))

        checkpoint("remote-add")
        result.record("remote-add", self._add_remote(remote_url, cwd, result))

        checkpoint("stage-all")
        result.record("stage-all", self._checked("stage-all", ["add", "-A"], cwd, result))

        checkpoint("commit")
        status = self._checked("commit", ["status", "--porcelain"], cwd, result)
        if not status.strip():
            raise NothingToCommitError(
                f"nothing to commit in {cwd}", step="commit", output=status, result=result
            )
        commit_args = [
            "-c",
            f"user.name={author_name}",
            "-c",
            f"user.email={self.author_email}",
            "-c",
            "commit.gpgsign=false",
            "commit",
            "-m",
            self.commit_message,
        ]
        result.record("commit", self._checked("commit", commit_args, cwd, result))

        checkpoint("push")
        push_args = [
            "-c",
            f"http.extraHeader={_basic_auth_header(self.push_username, token)}",
            "push",
            "-u",
            REMOTE_NAME,
            "HEAD",
        ]
        proc = self._git("push", push_args, cwd, result)
        if proc.returncode != 0:
            output = proc.output.strip()
            lowered = output.lower()
            if any(marker in lowered for marker in _PUSH_REJECTION_MARKERS):
                raise PushRejectedError(
                    "push was rejected by the remote", step="push", output=output, result=result
                )
            raise ToolInvocationError(
                f"git push failed with exit code {proc.returncode}",
                step="push",
                output=output,
                result=result,
            )
        result.record("push", proc.output)
        return result

    def _add_remote(self, remote_url: str, cwd: Path, result: BootstrapResult) -> str:
        existing = self._git("remote-add", ["remote", "get-url", REMOTE_NAME], cwd, result)
        if existing.returncode == 0:
            current = existing.output.strip()
            if current == remote_url:
                return existing.output
            raise RemoteExistsError(
                f"remote {REMOTE_NAME!r} already points at {current}",
                step="remote-add",
                output=current,
                result=result,
            )
        return self._checked("remote-add", ["remote", "add", REMOTE_NAME, remote_url], cwd, result)
