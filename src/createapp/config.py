"""Application configuration contract."""

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from createapp.errors import ConfigError

DEFAULT_ENV_FILE = ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=DEFAULT_ENV_FILE, extra="ignore")

    app_env: str = Field(alias="APP_ENV", default="dev")
    log_level: str = Field(alias="LOG_LEVEL", default="WARNING")
    env_file: str = Field(alias="CREATE_APP_ENV_FILE", default=DEFAULT_ENV_FILE)

    oauth_client_id: str = Field(alias="OAUTH_CLIENT_ID", default="")
    oauth_scopes: str = Field(alias="OAUTH_SCOPES", default="repo,read:org")
    github_host: str = Field(alias="GITHUB_HOST", default="github.com")
    github_api_base_url: str = Field(
        alias="GITHUB_API_BASE_URL", default="https://api.github.com"
    )
    http_timeout_seconds: float = Field(alias="HTTP_TIMEOUT_SECONDS", default=30.0)

    git_bin: str = Field(alias="GIT_BIN", default="git")
    git_timeout_seconds: float = Field(alias="GIT_TIMEOUT_SECONDS", default=120.0)
    commit_message: str = Field(alias="CREATE_APP_COMMIT_MESSAGE", default="Initial commit")
    bot_name: str = Field(alias="CREATE_APP_BOT_NAME", default="Create-App")
    bot_email: str = Field(
        alias="CREATE_APP_BOT_EMAIL", default="create-app@users.noreply.github.com"
    )
    push_username: str = Field(alias="CREATE_APP_PUSH_USERNAME", default="Create-App")

    def scope_list(self) -> list[str]:
        return [item.strip() for item in self.oauth_scopes.split(",") if item.strip()]

    @property
    def device_code_url(self) -> str:
        return f"https://{self.github_host}/login/device/code"

    @property
    def token_url(self) -> str:
        return f"https://{self.github_host}/login/oauth/access_token"


def validate_settings(settings: Settings) -> None:
    problems: list[str] = []
    if settings.http_timeout_seconds <= 0:
        problems.append("HTTP_TIMEOUT_SECONDS(must be positive)")
    if settings.git_timeout_seconds <= 0:
        problems.append("GIT_TIMEOUT_SECONDS(must be positive)")
    if not settings.scope_list():
        problems.append("OAUTH_SCOPES(at least one scope required)")
    if "://" in settings.github_host or "/" in settings.github_host:
        problems.append("GITHUB_HOST(bare host name expected)")
    if not settings.commit_message.strip():
        problems.append("CREATE_APP_COMMIT_MESSAGE")

    if problems:
        raise ConfigError(f"invalid configuration: {', '.join(problems)}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    env_file = os.environ.get("CREATE_APP_ENV_FILE", DEFAULT_ENV_FILE)
    return Settings(_env_file=env_file)
