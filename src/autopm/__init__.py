"""autopm - route issue operations to GitHub Issues or Azure DevOps.

High-level public API:

from autopm import ProviderRouter, load_config

cfg = load_config()                      # .claude/config.json + environment
router = ProviderRouter(cfg)
shown = router.execute("issue:show", 42)
print(shown.formatted)

Adapters can also be used directly (``GitHubProvider``, ``AzureDevOpsProvider``);
both accept injected runners/sessions for testing.
"""

from __future__ import annotations

__version__ = "0.3.0"

from .config import AutopmConfig, load_config
from .errors import AutopmError
from .formatter import format_issue
from .mapping import extract_id_from_relation_url, map_state, map_type
from .models import ActionResult, NormalizedIssue, ShowResult
from .providers import AzureDevOpsProvider, CloseOptions, GitHubProvider, StartOptions
from .router import ProviderRouter

__all__ = [
    "ActionResult",
    "AutopmConfig",
    "AutopmError",
    "AzureDevOpsProvider",
    "CloseOptions",
    "GitHubProvider",
    "NormalizedIssue",
    "ProviderRouter",
    "ShowResult",
    "StartOptions",
    "__version__",
    "extract_id_from_relation_url",
    "format_issue",
    "load_config",
    "map_state",
    "map_type",
]
