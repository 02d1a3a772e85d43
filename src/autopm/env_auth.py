"""Environment-based credential discovery.

Tokens come from environment variables, optionally seeded from a ``.env``
file (``.claude/.env`` first, then the usual project-root locations).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .logging import get_logger

DOTENV_LOCATIONS = (".claude/.env", ".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Which variables hold credentials and whether to read ``.env`` files."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_vars: tuple[str, ...] = ("GITHUB_TOKEN", "GH_TOKEN")
    azure_token_vars: tuple[str, ...] = ("AZURE_DEVOPS_TOKEN", "AZURE_DEVOPS_PAT")
    search_root: Path = field(default_factory=Path.cwd)


class EnvironmentAuthManager:
    """Resolves provider tokens without ever logging their values."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self.dotenv_file: Path | None = None
        if config.load_dotenv:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        candidates: list[Path] = []
        if self.config.dotenv_path:
            candidates.append(Path(self.config.dotenv_path))
        candidates.extend(self.config.search_root / loc for loc in DOTENV_LOCATIONS)
        for env_path in candidates:
            if env_path.is_file():
                # existing environment always wins over file values
                load_dotenv(str(env_path), override=False)
                self.dotenv_file = env_path
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    @staticmethod
    def _first_env(names: tuple[str, ...]) -> tuple[str | None, str | None]:
        for name in names:
            raw = os.environ.get(name)
            if raw is None:
                continue
            token = raw.strip()
            if token:
                return name, token
        return None, None

    def get_github_token(self) -> str | None:
        name, token = self._first_env(self.config.github_token_vars)
        if token:
            self.logger.debug(f"Found GitHub token in {name}")
        return token

    def get_azure_token(self) -> str | None:
        name, token = self._first_env(self.config.azure_token_vars)
        if token:
            self.logger.debug(f"Found Azure DevOps token in {name}")
        return token

    def get_token(self, provider: str) -> str | None:
        if provider == "github":
            return self.get_github_token()
        if provider == "azure":
            return self.get_azure_token()
        return None

    def token_variables(self, provider: str) -> tuple[str, ...]:
        if provider == "github":
            return self.config.github_token_vars
        if provider == "azure":
            return self.config.azure_token_vars
        return ()

    def is_ci_environment(self) -> bool:
        return any(os.getenv(var) for var in ("CI", "GITHUB_ACTIONS", "TF_BUILD"))

    def get_authentication_recommendations(self, provider: str) -> list[str]:
        recommendations: list[str] = []
        if provider == "github" and not self.get_github_token():
            recommendations.extend(
                [
                    "Set GITHUB_TOKEN (or GH_TOKEN) to a token with repo scope",
                    "Or add GITHUB_TOKEN=<token> to .claude/.env",
                ]
            )
            if not self.is_ci_environment():
                recommendations.append("Run 'gh auth token' to print the token of a logged-in gh")
        if provider == "azure" and not self.get_azure_token():
            recommendations.extend(
                [
                    "Set AZURE_DEVOPS_TOKEN (or AZURE_DEVOPS_PAT) to a PAT with Work Items read & write",
                    "Or add AZURE_DEVOPS_PAT=<token> to .claude/.env",
                ]
            )
        return recommendations

    def status(self, provider: str) -> dict[str, Any]:
        return {
            "provider": provider,
            "token_present": self.get_token(provider) is not None,
            "token_variables": list(self.token_variables(provider)),
            "dotenv_file": str(self.dotenv_file) if self.dotenv_file else None,
            "ci": self.is_ci_environment(),
            "recommendations": self.get_authentication_recommendations(provider),
        }


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    if config is None:
        config = EnvAuthConfig()
    return EnvironmentAuthManager(config)


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager", "create_env_auth_manager"]
