import logging

import pytest

from createapp.config import get_settings

_ENV_KEYS = (
    "APP_ENV",
    "LOG_LEVEL",
    "CREATE_APP_ENV_FILE",
    "OAUTH_CLIENT_ID",
    "OAUTH_SCOPES",
    "GITHUB_TOKEN",
    "GITHUB_HOST",
    "GITHUB_API_BASE_URL",
    "HTTP_TIMEOUT_SECONDS",
    "GIT_BIN",
    "CREATE_APP_COMMIT_MESSAGE",
    "CREATE_APP_BOT_NAME",
    "CREATE_APP_BOT_EMAIL",
    "CREATE_APP_PUSH_USERNAME",
)


@pytest.fixture(autouse=True)
def test_env(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    workdir = tmp_path_factory.mktemp("cwd")
    monkeypatch.chdir(workdir)
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    get_settings.cache_clear()
    yield workdir
    get_settings.cache_clear()
    root.handlers[:] = handlers
    root.setLevel(level)
