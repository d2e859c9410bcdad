"""Interactive questions that produce ProjectAnswers and a RepositoryChoice."""

from __future__ import annotations

import re
from collections.abc import Iterable

import click

from createapp.models import NEXTJS_TECHS, Framework, ProjectAnswers, RepositoryChoice

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_name(value: str) -> str:
    value = value.strip()
    if not NAME_PATTERN.match(value):
        raise click.BadParameter("use letters, digits, '-' and '_' only")
    return value


def parse_techs(value: str | Iterable[str]) -> frozenset[str]:
    items = value.split(",") if isinstance(value, str) else list(value)
    by_lower = {tech.lower(): tech for tech in NEXTJS_TECHS}
    selected: set[str] = set()
    for item in items:
        item = item.strip()
        if not item:
            continue
        tech = by_lower.get(item.lower())
        if tech is None:
            raise click.BadParameter(
                f"unknown tech {item!r}; choose from {', '.join(NEXTJS_TECHS)}"
            )
        selected.add(tech)
    return frozenset(selected)


class PromptSession:
    """Asks only for what was not already given on the command line."""

    def __init__(
        self,
        *,
        name: str | None = None,
        directory: str | None = None,
        framework: str | None = None,
        techs: Iterable[str] = (),
        create_repo: bool | None = None,
        repo_name: str | None = None,
        private: bool | None = None,
    ) -> None:
        self.name = name
        self.directory = directory
        self.framework = framework
        self.techs = tuple(techs)
        self.create_repo = create_repo
        self.repo_name = repo_name
        self.private = private

    def ask_project(self) -> ProjectAnswers:
        name = (
            validate_name(self.name)
            if self.name is not None
            else click.prompt("What's the name of your app?", value_proc=validate_name)
        )
        directory = self.directory
        if directory is None:
            directory = click.prompt(
                "Where do you want to deploy your app?", default=".", show_default=True
            )
        directory = directory.strip() or "."

        choice = self.framework
        if choice is None:
            choice = click.prompt(
                "What framework do you want to use?",
                type=click.Choice([item.value for item in Framework], case_sensitive=False),
            )
        framework = next(item for item in Framework if item.value.lower() == choice.lower())

        techs: frozenset[str] = frozenset()
        if framework is Framework.NEXTJS:
            if self.techs:
                techs = parse_techs(self.techs)
            else:
                techs = click.prompt(
                    f"What techs do you want to use? ({', '.join(NEXTJS_TECHS)})",
                    default="",
                    show_default=False,
                    value_proc=parse_techs,
                )
        elif self.techs:
            raise click.BadParameter("--tech is only valid with the NextJs framework")

        return ProjectAnswers(name=name, directory=directory, framework=framework, techs=techs)

    def ask_repository(self, default_name: str) -> RepositoryChoice:
        create = self.create_repo
        if create is None:
            create = click.confirm("Would you like to create a github repo?", default=False)
        if not create:
            return RepositoryChoice(create=False)

        repo_name = self.repo_name
        if repo_name is None:
            repo_name = click.prompt(
                "Enter the name of the github repo",
                default=default_name,
                value_proc=validate_name,
            )
        else:
            repo_name = validate_name(repo_name)

        private = self.private
        if private is None:
            visibility = click.prompt(
                "Do you want your repo public or private?",
                type=click.Choice(["private", "public"]),
                default="private",
            )
            private = visibility == "private"
        return RepositoryChoice(create=True, name=repo_name, private=private)
