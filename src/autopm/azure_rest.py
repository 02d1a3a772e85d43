from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from .errors import (
    MalformedResponseError,
    ProviderCommandError,
    TransientError,
    classify_failure,
)

DEFAULT_API_URL = "https://dev.azure.com"
API_VERSION = "7.1"
COMMENTS_API_VERSION = "7.1-preview.4"
USER_AGENT = "autopm-azure/0.3.0"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT = 30


class AzureDevOpsAPIError(ProviderCommandError):
    """Raised when Azure DevOps returns an error outside the known categories."""


@dataclass
class AzureDevOpsClient:
    """Minimal Work Item Tracking REST client for one organization/project."""

    token: str
    organization: str
    project: str
    base_url: str = DEFAULT_API_URL
    session: requests.Session | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        basic = base64.b64encode(f":{self.token}".encode()).decode("ascii")
        self._session.headers.setdefault("Authorization", f"Basic {basic}")
        self._session.headers.setdefault("Accept", "application/json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    @property
    def org_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{quote(self.organization)}"

    @property
    def project_url(self) -> str:
        return f"{self.org_url}/{quote(self.project)}"

    def web_url(self, work_item_id: int) -> str:
        return f"{self.project_url}/_workitems/edit/{work_item_id}"

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
        content_type: str = "application/json",
    ) -> Any:
        headers = dict(self._session.headers)
        if json_body is not None:
            headers["Content-Type"] = content_type
        try:
            response = self._session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.Timeout as exc:
            raise TransientError(f"Azure DevOps {method} {url} timed out") from exc
        except requests.ConnectionError as exc:
            raise TransientError(f"Azure DevOps {method} {url} connection failed: {exc}") from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            cls = classify_failure(response.text, response.status_code)
            message = f"Azure DevOps API {method} {url} failed with {response.status_code}"
            if cls is ProviderCommandError:
                raise AzureDevOpsAPIError(
                    message, status=response.status_code, response_text=response.text
                )
            raise cls(message)
        if not response.text:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Azure DevOps {method} {url}: response is not JSON") from exc

    # ---- Work item operations -----------------------------------------
    def get_work_item(self, work_item_id: int) -> dict[str, Any]:
        data = self._request(
            "GET",
            f"{self.project_url}/_apis/wit/workitems/{work_item_id}",
            params={"$expand": "relations", "api-version": API_VERSION},
        )
        if not isinstance(data, dict) or "id" not in data or not isinstance(data.get("fields"), dict):
            raise MalformedResponseError(
                f"Azure DevOps work item {work_item_id}: response missing id/fields"
            )
        return data

    def update_work_item(
        self, work_item_id: int, fields: dict[str, Any], *, op: str = "add"
    ) -> dict[str, Any]:
        patch = [
            {"op": op, "path": f"/fields/{name}", "value": value} for name, value in fields.items()
        ]
        data = self._request(
            "PATCH",
            f"{self.project_url}/_apis/wit/workitems/{work_item_id}",
            params={"api-version": API_VERSION},
            json_body=patch,
            content_type="application/json-patch+json",
        )
        return data if isinstance(data, dict) else {}

    def add_comment(self, work_item_id: int, text: str) -> dict[str, Any]:
        data = self._request(
            "POST",
            f"{self.project_url}/_apis/wit/workItems/{work_item_id}/comments",
            params={"api-version": COMMENTS_API_VERSION},
            json_body={"text": text},
        )
        return data if isinstance(data, dict) else {}

    def current_user(self) -> str | None:
        data = self._request("GET", f"{self.org_url}/_apis/connectionData")
        if not isinstance(data, dict):
            return None
        user = data.get("authenticatedUser")
        if not isinstance(user, dict):
            return None
        props = user.get("properties")
        if isinstance(props, dict):
            account = props.get("Account")
            if isinstance(account, dict) and isinstance(account.get("$value"), str):
                return account["$value"]
        name = user.get("providerDisplayName")
        return name if isinstance(name, str) else None


__all__ = ["AzureDevOpsAPIError", "AzureDevOpsClient"]
