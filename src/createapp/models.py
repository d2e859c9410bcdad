"""Records passed between the prompt, auth, host and bootstrap layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Framework(str, Enum):
    REACT = "React"
    NEXTJS = "NextJs"
    NODEJS = "NodeJs"
    DISCORDJS = "DiscordJs"


NEXTJS_TECHS = ("TailwindCSS", "SASS", "Prettier", "ESLint", "FontAwesome")


@dataclass(frozen=True, slots=True)
class ProjectAnswers:
    name: str
    directory: str
    framework: Framework
    techs: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.techs and self.framework is not Framework.NEXTJS:
            raise ValueError("techs can only be selected for NextJs projects")


@dataclass(frozen=True, slots=True)
class RepositoryChoice:
    create: bool
    name: str = ""
    private: bool = True


@dataclass(frozen=True, slots=True)
class Credentials:
    client_id: str
    access_token: str | None = None


@dataclass(slots=True)
class DeviceAuthSession:
    """Codes returned by the device endpoint; `interval` grows on slow_down."""

    device_code: str
    user_code: str
    verification_uri: str
    expires_at: float
    interval: float
    issued_at: float


@dataclass(frozen=True, slots=True)
class RemoteRepository:
    name: str
    private: bool
    html_url: str


@dataclass(slots=True)
class BootstrapResult:
    completed: list[str] = field(default_factory=list)
    outputs: dict[str, str] = field(default_factory=dict)

    def record(self, step: str, output: str) -> None:
        self.completed.append(step)
        self.outputs[step] = output
