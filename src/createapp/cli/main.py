"""Click CLI group: new, login, whoami and logout commands."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

import click

from createapp.auth.session import login as device_login
from createapp.auth.session import resolve_client_id
from createapp.cli import create
from createapp.cli.prompts import PromptSession
from createapp.config import Settings, get_settings, validate_settings
from createapp.errors import AuthError, CreateAppError, HostError
from createapp.logging import bind_context, configure_logging
from createapp.models import Framework

T = TypeVar("T")


@contextmanager
def _user_errors(stage: str) -> Iterator[None]:
    try:
        yield
    except HostError as exc:
        raise click.ClickException(
            f"{stage} failed: {exc}. The repository was not created."
        ) from exc
    except AuthError as exc:
        raise click.ClickException(
            f"{stage} failed: {exc}. No repository was created and nothing was pushed."
        ) from exc
    except CreateAppError as exc:
        raise click.ClickException(f"{stage} failed: {exc}") from exc


def _settings(ctx: click.Context) -> Settings:
    settings: Settings = ctx.obj["settings"]
    return settings


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Scaffold an app and push it to a new GitHub repository."""
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)
    with _user_errors("configuration"):
        validate_settings(settings)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


@cli.command()
@click.option("--name", type=str, default=None, help="App name.")
@click.option("--directory", type=str, default=None, help="Target directory (default: '.').")
@click.option(
    "--framework",
    type=click.Choice([item.value for item in Framework], case_sensitive=False),
    default=None,
)
@click.option("--tech", "techs", multiple=True, help="NextJs tech to include; repeatable.")
@click.option("--repo/--no-repo", "create_repo", default=None, help="Create a GitHub repo.")
@click.option("--repo-name", type=str, default=None, help="Repository name (default: app name).")
@click.option("--private/--public", "private", default=None, help="Repository visibility.")
@click.pass_context
def new(
    ctx: click.Context,
    name: str | None,
    directory: str | None,
    framework: str | None,
    techs: tuple[str, ...],
    create_repo: bool | None,
    repo_name: str | None,
    private: bool | None,
) -> None:
    """Ask for the project details, then create and push the repository."""
    settings = _settings(ctx)
    prompts = PromptSession(
        name=name,
        directory=directory,
        framework=framework,
        techs=techs,
        create_repo=create_repo,
        repo_name=repo_name,
        private=private,
    )
    answers = prompts.ask_project()
    bind_context(app=answers.name)
    if answers.techs:
        click.echo(f"Techs: {', '.join(sorted(answers.techs))}")
    click.echo(f'Building {answers.name} in "{answers.directory}"...')

    choice = prompts.ask_repository(answers.name)
    with _user_errors("GitHub repository setup"):
        create.run_create(answers, choice, settings)


def _run(stage: str, coro: Coroutine[Any, Any, T]) -> T:
    with _user_errors(stage):
        return asyncio.run(coro)


@cli.command("login")
@click.pass_context
def login_cmd(ctx: click.Context) -> None:
    """Authorize with the device flow and store the token."""
    settings = _settings(ctx)
    store = create.build_store(settings)

    async def _login() -> None:
        client_id = resolve_client_id(store.load(), settings.oauth_client_id)
        credentials = await device_login(
            store,
            create.build_flow(settings),
            client_id=client_id,
            scopes=settings.scope_list(),
            on_code=create.display_device_code,
        )
        user = await create.build_client_factory(settings)(credentials.access_token or "").whoami()
        click.echo(f"Connected as {user}")

    _run("login", _login())
    click.echo(f"Token saved to {store.path}")


@cli.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Print the GitHub login behind the stored token."""
    settings = _settings(ctx)
    stored = create.build_store(settings).load()
    if stored is None:
        raise click.ClickException("not logged in; run `create-app login`")

    async def _lookup() -> str:
        return await create.build_client_factory(settings)(stored.access_token or "").whoami()

    click.echo(_run("whoami", _lookup()))


@cli.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Remove the stored token."""
    store = create.build_store(_settings(ctx))
    with _user_errors("logout"):
        removed = store.clear()
    click.echo("Stored token removed." if removed else "No stored token.")


def main() -> None:
    cli(obj={})
