from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml
from jsonschema import Draft7Validator

from .errors import ConfigurationError
from .git import GitClient

CONFIG_DEFAULT = ".claude/config.json"
DEFAULT_PROVIDER = "github"
KNOWN_PROVIDERS = ("github", "azure", "local")
DEFAULT_HISTORY_PATH = ".claude/history.jsonl"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}

_GITHUB_REMOTE = re.compile(
    r"github\.com[:/](?P<owner>[^/\s]+)/(?P<repo>[^/\s]+?)(?:\.git)?/?$"
)

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "AutopmConfig",
    "type": "object",
    "properties": {
        "provider": {"type": "string", "enum": list(KNOWN_PROVIDERS)},
        "use_real_api": {"type": "boolean"},
        "providers": {
            "type": "object",
            "properties": {
                "github": {
                    "type": "object",
                    "properties": {
                        "owner": {"type": "string", "minLength": 1},
                        "repo": {"type": "string", "minLength": 1},
                    },
                },
                "azure": {
                    "type": "object",
                    "properties": {
                        "organization": {"type": "string", "minLength": 1},
                        "project": {"type": "string", "minLength": 1},
                        "close_state": {"type": "string", "minLength": 1},
                        "active_state": {"type": "string", "minLength": 1},
                        "user": {"type": "string"},
                        "api_url": {"type": "string"},
                    },
                },
            },
        },
        "history": {
            "type": "object",
            "properties": {
                "enabled": {"type": "boolean"},
                "path": {"type": "string"},
            },
        },
        "logging": {
            "type": "object",
            "properties": {
                "json": {"type": "boolean"},
                "level": {
                    "type": "string",
                    "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "debug", "info", "warning", "error"],
                },
            },
        },
    },
}


@dataclass
class GitHubSettings:
    owner: str | None = None
    repo: str | None = None

    @property
    def repository(self) -> str | None:
        if self.owner and self.repo:
            return f"{self.owner}/{self.repo}"
        return None


@dataclass
class AzureSettings:
    organization: str | None = None
    project: str | None = None
    close_state: str = "Closed"
    active_state: str = "Active"
    user: str | None = None
    api_url: str = "https://dev.azure.com"


@dataclass
class AutopmConfig:
    provider: str = DEFAULT_PROVIDER
    source_file: Path | None = None
    github: GitHubSettings = field(default_factory=GitHubSettings)
    azure: AzureSettings = field(default_factory=AzureSettings)
    dry_run: bool = False
    history_enabled: bool = False
    history_path: Path = field(default_factory=lambda: Path(DEFAULT_HISTORY_PATH))
    logging_json: bool = False
    logging_level: str = "WARNING"

    def require_github(self) -> GitHubSettings:
        if not self.github.repository:
            raise ConfigurationError(
                "GitHub repository is not configured: set providers.github.owner/repo "
                "or run inside a clone with a github.com 'origin' remote"
            )
        return self.github

    def require_azure(self) -> AzureSettings:
        missing = [
            name
            for name, value in (
                ("organization", self.azure.organization),
                ("project", self.azure.project),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                "Azure DevOps settings missing: "
                + ", ".join(missing)
                + " (set providers.azure.* or AZURE_DEVOPS_ORG / AZURE_DEVOPS_PROJECT)"
            )
        return self.azure

    def describe(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "source_file": str(self.source_file) if self.source_file else None,
            "github": {"owner": self.github.owner, "repo": self.github.repo},
            "azure": {
                "organization": self.azure.organization,
                "project": self.azure.project,
                "close_state": self.azure.close_state,
                "active_state": self.azure.active_state,
            },
            "dry_run": self.dry_run,
            "history": {"enabled": self.history_enabled, "path": str(self.history_path)},
            "logging": {"json": self.logging_json, "level": self.logging_level},
        }


def env_flag(name: str) -> bool | None:
    """Tri-state environment flag: True / False / None when unset or unparseable."""
    value = os.environ.get(name)
    if value is None:
        return None
    low = value.strip().lower()
    if low in _TRUTHY:
        return True
    if low in _FALSY:
        return False
    return None


def resolve_provider(file_value: str | None) -> str:
    """Active provider: AUTOPM_PROVIDER env, then config file, then github."""
    override = (os.environ.get("AUTOPM_PROVIDER") or "").strip().lower()
    if override:
        return override
    if file_value:
        return file_value.strip().lower()
    return DEFAULT_PROVIDER


def parse_github_remote(url: str | None) -> tuple[str, str] | None:
    """Extract (owner, repo) from an HTTPS or SSH github.com remote URL."""
    if not url:
        return None
    match = _GITHUB_REMOTE.search(url.strip())
    if not match:
        return None
    return match.group("owner"), match.group("repo")


def _read_document(p: Path) -> dict[str, Any]:
    text = p.read_text(encoding="utf-8")
    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            raw: Any = yaml.safe_load(text)
        else:
            raw = json.loads(text) if text.strip() else {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Invalid configuration file {p}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration root must be an object: {p}")
    return cast(dict[str, Any], raw)


def validate_document(raw: dict[str, Any], source: str = "<config>") -> None:
    validator = Draft7Validator(CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(raw), key=lambda e: list(e.absolute_path))
    if errors:
        details = "; ".join(
            f"{'/'.join(str(p) for p in err.absolute_path) or '<root>'}: {err.message}"
            for err in errors
        )
        raise ConfigurationError(f"Invalid configuration {source}: {details}")


def load_config(
    path: str | Path | None = None,
    *,
    git: GitClient | None = None,
    provider_override: str | None = None,
    dry_run: bool | None = None,
) -> AutopmConfig:
    """Load, validate and resolve configuration.

    A missing file is not an error: defaults plus environment apply. The
    GitHub repository is derived from the git ``origin`` remote only when the
    file leaves it unset and GitHub is the active provider.
    """
    p = Path(path or os.environ.get("AUTOPM_CONFIG") or CONFIG_DEFAULT)
    raw: dict[str, Any] = {}
    source_file: Path | None = None
    if p.exists():
        raw = _read_document(p)
        source_file = p
    elif path is not None:
        raise ConfigurationError(f"Configuration file not found: {p}")
    validate_document(raw, str(p))

    providers = cast(dict[str, Any], raw.get("providers", {}) or {})
    gh = cast(dict[str, Any], providers.get("github", {}) or {})
    az = cast(dict[str, Any], providers.get("azure", {}) or {})
    history = cast(dict[str, Any], raw.get("history", {}) or {})
    logging_config = cast(dict[str, Any], raw.get("logging", {}) or {})

    provider = (provider_override or "").strip().lower() or resolve_provider(raw.get("provider"))

    github = GitHubSettings(owner=gh.get("owner"), repo=gh.get("repo"))
    if provider == "github" and not github.repository:
        parsed = parse_github_remote((git or GitClient()).remote_url())
        if parsed:
            github.owner = github.owner or parsed[0]
            github.repo = github.repo or parsed[1]

    azure = AzureSettings(
        organization=az.get("organization") or os.environ.get("AZURE_DEVOPS_ORG"),
        project=az.get("project") or os.environ.get("AZURE_DEVOPS_PROJECT"),
        close_state=az.get("close_state", "Closed"),
        active_state=az.get("active_state", "Active"),
        user=az.get("user") or os.environ.get("AZURE_DEVOPS_USER"),
        api_url=az.get("api_url", "https://dev.azure.com"),
    )

    use_real_api = env_flag("AUTOPM_USE_REAL_API")
    if use_real_api is None:
        use_real_api = bool(raw.get("use_real_api", True))

    history_env = env_flag("AUTOPM_HISTORY")
    history_path = os.environ.get("AUTOPM_HISTORY_PATH") or history.get("path") or DEFAULT_HISTORY_PATH

    return AutopmConfig(
        provider=provider,
        source_file=source_file,
        github=github,
        azure=azure,
        dry_run=bool(dry_run) or not use_real_api,
        history_enabled=history_env if history_env is not None else bool(history.get("enabled", False)),
        history_path=Path(history_path),
        logging_json=bool(logging_config.get("json", False)),
        logging_level=str(logging_config.get("level", "WARNING")).upper(),
    )


__all__ = [
    "AutopmConfig",
    "AzureSettings",
    "CONFIG_DEFAULT",
    "CONFIG_SCHEMA",
    "GitHubSettings",
    "env_flag",
    "load_config",
    "parse_github_remote",
    "resolve_provider",
    "validate_document",
]
