import signal
from collections.abc import Callable, Sequence
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from createapp.auth.device_flow import DeviceAuthFlow
from createapp.bootstrap.git import CommandResult, LocalRepoBootstrapper
from createapp.cli import create as create_module
from createapp.cli.main import cli
from createapp.errors import PushRejectedError
from createapp.github.client import GitHubClient
from createapp.models import BootstrapResult

NAME_EXISTS = {
    "message": "Repository creation failed.",
    "errors": [{"code": "custom", "field": "name", "message": "name already exists"}],
}


def _github(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    def factory(settings):
        return lambda token: GitHubClient(token, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(create_module, "build_client_factory", factory)


def _host(repo_status: int = 201, repo_body: dict | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/user":
            return httpx.Response(200, json={"login": "octocat"})
        if request.url.path == "/user/repos":
            body = repo_body or {
                "name": "my-app",
                "private": True,
                "html_url": "https://github.com/octocat/my-app",
            }
            return httpx.Response(repo_status, json=body)
        return httpx.Response(404)

    return handler


class RecordingBootstrapper:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple] = []

    def run(self, directory, remote_url, token, author_name, **kwargs) -> BootstrapResult:
        self.calls.append((directory, remote_url, token, author_name))
        if self.error is not None:
            raise self.error
        result = BootstrapResult()
        for step in ("init", "remote-add", "stage-all", "commit", "push"):
            result.record(step, "")
        return result


@pytest.fixture
def logged_in(test_env: Path) -> Path:
    env = test_env / ".env"
    env.write_text("OAUTH_CLIENT_ID=abc123\nGITHUB_TOKEN=tok_xyz\n")
    return env


@pytest.fixture
def bootstrapper(monkeypatch: pytest.MonkeyPatch) -> RecordingBootstrapper:
    fake = RecordingBootstrapper()
    monkeypatch.setattr(create_module, "build_bootstrapper", lambda settings: fake)
    return fake


NEW_ARGS = ["new", "--name", "my-app", "--directory", "app", "--framework", "React"]


def test_new_without_repo() -> None:
    result = CliRunner().invoke(cli, [*NEW_ARGS, "--no-repo"])
    assert result.exit_code == 0, result.output
    assert 'Building my-app in "app"...' in result.output
    assert "Repository created" not in result.output


def test_new_interactive_nextjs_techs() -> None:
    result = CliRunner().invoke(cli, ["new"], input="my-app\n\nNextJs\nSASS,eslint\nn\n")
    assert result.exit_code == 0, result.output
    assert "Techs: ESLint, SASS" in result.output
    assert 'Building my-app in "."...' in result.output


def test_new_rejects_invalid_name() -> None:
    result = CliRunner().invoke(cli, ["new", "--name", "my app", "--no-repo"])
    assert result.exit_code == 2
    assert "letters, digits" in result.output


def test_new_creates_repo_and_pushes(
    monkeypatch: pytest.MonkeyPatch, logged_in: Path, bootstrapper: RecordingBootstrapper
) -> None:
    _github(monkeypatch, _host())
    result = CliRunner().invoke(cli, [*NEW_ARGS, "--repo", "--private"])
    assert result.exit_code == 0, result.output
    assert "Connected as octocat" in result.output
    assert "Repository created: https://github.com/octocat/my-app" in result.output
    assert "Changes pushed to remote repository." in result.output
    assert bootstrapper.calls == [
        ("app", "https://github.com/octocat/my-app", "tok_xyz", "Create-App")
    ]


def test_name_conflict_never_bootstraps(
    monkeypatch: pytest.MonkeyPatch, logged_in: Path, bootstrapper: RecordingBootstrapper
) -> None:
    _github(monkeypatch, _host(repo_status=422, repo_body=NAME_EXISTS))
    result = CliRunner().invoke(cli, [*NEW_ARGS, "--repo", "--private"])
    assert result.exit_code == 1
    assert "already exists" in result.output
    assert "The repository was not created." in result.output
    assert bootstrapper.calls == []


def test_push_failure_reports_partial_state(
    monkeypatch: pytest.MonkeyPatch, logged_in: Path
) -> None:
    partial = BootstrapResult()
    for step in ("init", "remote-add", "stage-all", "commit"):
        partial.record(step, "")
    fake = RecordingBootstrapper(
        PushRejectedError(
            "push was rejected by the remote",
            step="push",
            output="remote: Permission denied (403)",
            result=partial,
        )
    )
    monkeypatch.setattr(create_module, "build_bootstrapper", lambda settings: fake)
    _github(monkeypatch, _host())

    result = CliRunner().invoke(cli, [*NEW_ARGS, "--repo", "--public"])
    assert result.exit_code == 1
    assert "Repository https://github.com/octocat/my-app was created" in result.output
    assert "local step 'push' failed" in result.output
    assert "Completed steps: init, remote-add, stage-all, commit" in result.output
    assert "was not removed" in result.output
    assert "Permission denied (403)" in result.output


def test_missing_client_id_fails_cleanly(bootstrapper: RecordingBootstrapper) -> None:
    result = CliRunner().invoke(cli, [*NEW_ARGS, "--repo", "--private"])
    assert result.exit_code == 1
    assert "OAUTH_CLIENT_ID" in result.output
    assert bootstrapper.calls == []


def test_whoami_requires_login() -> None:
    result = CliRunner().invoke(cli, ["whoami"])
    assert result.exit_code == 1
    assert "not logged in" in result.output


def test_whoami_prints_login(monkeypatch: pytest.MonkeyPatch, logged_in: Path) -> None:
    _github(monkeypatch, _host())
    result = CliRunner().invoke(cli, ["whoami"])
    assert result.exit_code == 0, result.output
    assert result.output.strip() == "octocat"


def test_logout_removes_token(logged_in: Path) -> None:
    result = CliRunner().invoke(cli, ["logout"])
    assert result.exit_code == 0, result.output
    assert "Stored token removed." in result.output
    assert "GITHUB_TOKEN" not in logged_in.read_text()


def test_invalid_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OAUTH_SCOPES", " , ")
    result = CliRunner().invoke(cli, [*NEW_ARGS, "--no-repo"])
    assert result.exit_code == 1
    assert "configuration failed" in result.output


def test_login_runs_device_flow_and_saves(
    monkeypatch: pytest.MonkeyPatch, test_env: Path
) -> None:
    monkeypatch.setenv("OAUTH_CLIENT_ID", "abc123")

    def oauth_handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/login/device/code":
            return httpx.Response(
                200,
                json={
                    "device_code": "dev-code",
                    "user_code": "ABCD-1234",
                    "verification_uri": "https://github.com/login/device",
                    "expires_in": 900,
                    "interval": 5,
                },
            )
        return httpx.Response(200, json={"access_token": "tok_new"})

    async def no_sleep(seconds: float) -> None:
        return None

    monkeypatch.setattr(
        create_module,
        "build_flow",
        lambda settings: DeviceAuthFlow(
            settings.device_code_url,
            settings.token_url,
            transport=httpx.MockTransport(oauth_handler),
            sleep=no_sleep,
        ),
    )
    _github(monkeypatch, _host())

    result = CliRunner().invoke(cli, ["login"])
    assert result.exit_code == 0, result.output
    assert "ABCD-1234" in result.output
    assert "https://github.com/login/device" in result.output
    assert "Connected as octocat" in result.output
    saved = (test_env / ".env").read_text()
    assert "OAUTH_CLIENT_ID=abc123" in saved
    assert "GITHUB_TOKEN=tok_new" in saved


def _git_runner(interrupt_on: str, interrupt: Callable[[], None]):
    commands: list[str] = []

    def runner(args: Sequence[str], cwd: Path) -> CommandResult:
        rest = list(args[1:])
        while rest[:1] == ["-c"]:
            rest = rest[2:]
        command = " ".join(rest)
        commands.append(command)
        if command.startswith(interrupt_on):
            interrupt()
        if command.startswith("remote get-url"):
            return CommandResult(2, "error: No such remote 'origin'")
        if command.startswith("status --porcelain"):
            return CommandResult(0, "A  README.md\n")
        return CommandResult(0, "")

    return runner, commands


def _use_runner(monkeypatch: pytest.MonkeyPatch, runner) -> None:
    monkeypatch.setattr(
        create_module, "build_bootstrapper", lambda settings: LocalRepoBootstrapper(runner=runner)
    )


def test_ctrl_c_during_push_reports_created_repo(
    monkeypatch: pytest.MonkeyPatch, logged_in: Path
) -> None:
    def interrupt() -> None:
        raise KeyboardInterrupt

    runner, commands = _git_runner("push", interrupt)
    _use_runner(monkeypatch, runner)
    _github(monkeypatch, _host())

    result = CliRunner().invoke(cli, [*NEW_ARGS, "--repo", "--private"])
    assert result.exit_code == 1, result.output
    assert "Aborted!" not in result.output
    assert (
        "Repository https://github.com/octocat/my-app was created, "
        "but setup was cancelled at step 'push'"
    ) in result.output
    assert "Completed steps: init, remote-add, stage-all, commit" in result.output
    assert "The initial commit exists locally but was not pushed." in result.output
    assert "The remote repository was not removed." in result.output
    assert commands[-1].startswith("push")


def test_ctrl_c_between_steps_skips_remaining_steps(
    monkeypatch: pytest.MonkeyPatch, logged_in: Path
) -> None:
    original = signal.getsignal(signal.SIGINT)
    runner, commands = _git_runner("commit", lambda: signal.raise_signal(signal.SIGINT))
    _use_runner(monkeypatch, runner)
    _github(monkeypatch, _host())

    result = CliRunner().invoke(cli, [*NEW_ARGS, "--repo", "--private"])
    assert result.exit_code == 1, result.output
    assert "cancelled at step 'push'" in result.output
    assert "Completed steps: init, remote-add, stage-all, commit" in result.output
    assert not any(command.startswith("push") for command in commands)
    assert signal.getsignal(signal.SIGINT) is original
