"""Route ``issue:*`` commands to the adapter of the active provider."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from .config import AutopmConfig
from .env_auth import EnvironmentAuthManager, create_env_auth_manager
from .errors import ProviderNotFoundError
from .models import ActionResult, ShowResult
from .providers import AzureDevOpsProvider, CloseOptions, GitHubProvider, IssueProvider, StartOptions

ProviderFactory = Callable[[AutopmConfig, EnvironmentAuthManager], IssueProvider]

PROVIDERS: dict[str, ProviderFactory] = {
    "github": GitHubProvider.from_config,
    "azure": AzureDevOpsProvider.from_config,
}

COMMANDS: dict[str, str] = {
    "issue:show": "show",
    "issue:close": "close",
    "issue:start": "start",
    "issue-show": "show",
    "issue-close": "close",
    "issue-start": "start",
}


def resolve_operation(command: str) -> str:
    try:
        return COMMANDS[command.strip().lower()]
    except KeyError:
        raise ProviderNotFoundError(
            f"Unknown command '{command}' (expected one of: issue:show, issue:close, issue:start)"
        ) from None


class ProviderRouter:
    """Builds the adapter for ``config.provider`` and delegates commands to it.

    The adapter is created lazily on first use and cached for the lifetime of
    the router.
    """

    def __init__(
        self,
        config: AutopmConfig,
        *,
        registry: Mapping[str, ProviderFactory] | None = None,
        auth: EnvironmentAuthManager | None = None,
    ) -> None:
        self.config = config
        self.registry: Mapping[str, ProviderFactory] = registry if registry is not None else PROVIDERS
        self._auth = auth
        self._provider: IssueProvider | None = None

    @property
    def auth(self) -> EnvironmentAuthManager:
        if self._auth is None:
            self._auth = create_env_auth_manager()
        return self._auth

    def provider(self) -> IssueProvider:
        if self._provider is None:
            name = self.config.provider
            factory = self.registry.get(name)
            if factory is None:
                raise ProviderNotFoundError(
                    f"No adapter for provider '{name}' (available: {', '.join(sorted(self.registry))})"
                )
            self._provider = factory(self.config, self.auth)
        return self._provider

    def execute(
        self, command: str, issue_id: int | str, options: CloseOptions | StartOptions | None = None
    ) -> ShowResult | ActionResult:
        operation = resolve_operation(command)
        adapter = self.provider()
        if operation == "show":
            return adapter.show(issue_id)
        if operation == "close":
            return adapter.close(issue_id, _expect(options, CloseOptions))
        return adapter.start(issue_id, _expect(options, StartOptions))


def _expect(options: Any, kind: type[Any]) -> Any:
    if options is None:
        return kind()
    if not isinstance(options, kind):
        raise TypeError(f"expected {kind.__name__}, got {type(options).__name__}")
    return options


__all__ = ["COMMANDS", "PROVIDERS", "ProviderFactory", "ProviderRouter", "resolve_operation"]
