"""End-to-end scaffold flow: answers, optional GitHub repo, first push."""

from __future__ import annotations

import asyncio
import logging
import signal
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import click

from createapp.auth.credentials import CredentialStore
from createapp.auth.device_flow import DeviceAuthFlow
from createapp.auth.session import Connection, connect
from createapp.bootstrap.git import STEPS, LocalRepoBootstrapper, subprocess_runner
from createapp.config import Settings
from createapp.errors import BootstrapCancelledError, BootstrapError
from createapp.github.client import GitHubClient
from createapp.models import (
    BootstrapResult,
    DeviceAuthSession,
    ProjectAnswers,
    RemoteRepository,
    RepositoryChoice,
)

logger = logging.getLogger(__name__)


def display_device_code(session: DeviceAuthSession) -> None:
    click.echo(f"Copy code: {click.style(session.user_code, bold=True)}")
    click.echo(f"then open: {session.verification_uri}")
    click.echo("Waiting for authorization...")


def build_store(settings: Settings) -> CredentialStore:
    return CredentialStore(Path(settings.env_file))


def build_flow(settings: Settings) -> DeviceAuthFlow:
    return DeviceAuthFlow(
        settings.device_code_url,
        settings.token_url,
        timeout=settings.http_timeout_seconds,
    )


def build_client_factory(settings: Settings) -> Callable[[str], GitHubClient]:
    def factory(token: str) -> GitHubClient:
        return GitHubClient(
            token,
            base_url=settings.github_api_base_url,
            timeout=settings.http_timeout_seconds,
        )

    return factory


def build_bootstrapper(settings: Settings) -> LocalRepoBootstrapper:
    return LocalRepoBootstrapper(
        git_bin=settings.git_bin,
        commit_message=settings.commit_message,
        author_email=settings.bot_email,
        push_username=settings.push_username,
        runner=subprocess_runner(settings.git_timeout_seconds),
    )


async def open_connection(settings: Settings) -> Connection:
    return await connect(
        build_store(settings),
        build_flow(settings),
        build_client_factory(settings),
        configured_client_id=settings.oauth_client_id,
        scopes=settings.scope_list(),
        on_code=display_device_code,
    )


async def _connect_and_create(
    settings: Settings, choice: RepositoryChoice
) -> tuple[Connection, RemoteRepository]:
    connection = await open_connection(settings)
    click.echo(f"Connected as {connection.login}")
    repo = await connection.client.create_repository(choice.name, choice.private)
    return connection, repo


def describe_bootstrap_failure(exc: BootstrapError, repo: RemoteRepository) -> str:
    result = exc.result or BootstrapResult()
    completed = ", ".join(result.completed) or "none"
    skipped = [step for step in STEPS if step not in result.completed and step != exc.step]
    created = f"Repository {repo.html_url} was created"
    if isinstance(exc, BootstrapCancelledError):
        headline = f"{created}, but setup was cancelled at step '{exc.step}'"
    else:
        headline = f"{created}, but local step '{exc.step}' failed: {exc}"
    lines = [
        headline,
        f"Completed steps: {completed}",
    ]
    if skipped:
        lines.append(f"Not attempted: {', '.join(skipped)}")
    if "commit" in result.completed:
        lines.append("The initial commit exists locally but was not pushed.")
    lines.append("The remote repository was not removed.")
    if exc.output:
        lines.append("")
        lines.append(exc.output)
    return "\n".join(lines)


@contextmanager
def _interrupt_cancels(cancel: threading.Event) -> Iterator[None]:
    """First Ctrl-C lets the running git step finish and skips the rest; a second one aborts."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handle(signum: int, frame: object) -> None:
        if cancel.is_set():
            raise KeyboardInterrupt
        cancel.set()

    previous = signal.signal(signal.SIGINT, handle)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@dataclass(slots=True)
class CreateOutcome:
    answers: ProjectAnswers
    repository: RemoteRepository | None = None
    bootstrap: BootstrapResult | None = None


def run_create(
    answers: ProjectAnswers, choice: RepositoryChoice, settings: Settings
) -> CreateOutcome:
    """Create and push the repository when asked; raise click errors on failure.

    Once the remote exists, every way out of the git steps (failure, Ctrl-C)
    reports the repository URL and the local steps that completed.
    """
    outcome = CreateOutcome(answers=answers)
    if not choice.create:
        return outcome

    connection, repo = asyncio.run(_connect_and_create(settings, choice))
    outcome.repository = repo
    click.echo(f"Repository created: {repo.html_url}")
    click.echo("Pushing changes...")

    bootstrapper = build_bootstrapper(settings)
    cancel = threading.Event()
    progress = BootstrapResult()
    try:
        with _interrupt_cancels(cancel):
            outcome.bootstrap = bootstrapper.run(
                answers.directory,
                repo.html_url,
                connection.credentials.access_token or "",
                settings.bot_name,
                cancel=cancel,
                record=progress,
            )
    except KeyboardInterrupt as exc:
        pending = [step for step in STEPS if step not in progress.completed]
        if pending:
            cancelled = BootstrapCancelledError(
                f"interrupted during {pending[0]}", step=pending[0], result=progress
            )
            logger.error("Bootstrap interrupted at %s", pending[0])
            raise click.ClickException(describe_bootstrap_failure(cancelled, repo)) from exc
        outcome.bootstrap = progress
    except BootstrapError as exc:
        logger.error("Bootstrap failed at %s: %s", exc.step, exc)
        raise click.ClickException(describe_bootstrap_failure(exc, repo)) from exc

    click.echo(f"Steps completed: {', '.join(outcome.bootstrap.completed)}")
    click.echo("Changes pushed to remote repository.")
    return outcome
