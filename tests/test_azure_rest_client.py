import base64

import pytest
import requests
from conftest import DummyResponse, DummySession

from autopm.azure_rest import API_VERSION, AzureDevOpsAPIError, AzureDevOpsClient
from autopm.errors import (
    AuthenticationError,
    AuthorizationError,
    MalformedResponseError,
    NotFoundError,
    TransientError,
)


def _client(responses):
    session = DummySession(responses)
    client = AzureDevOpsClient(token="pat", organization="acme", project="Web Shop", session=session)
    return client, session


def test_basic_auth_header_and_urls():
    client, session = _client([])
    expected = base64.b64encode(b":pat").decode("ascii")
    assert session.headers["Authorization"] == f"Basic {expected}"
    assert client.project_url == "https://dev.azure.com/acme/Web%20Shop"
    assert client.web_url(5) == "https://dev.azure.com/acme/Web%20Shop/_workitems/edit/5"


def test_get_work_item_expands_relations():
    client, session = _client([DummyResponse(200, {"id": 5, "fields": {"System.Title": "x"}})])
    data = client.get_work_item(5)

    assert data["id"] == 5
    method, url, meta = session.request_log[0]
    assert method == "GET"
    assert url.endswith("/_apis/wit/workitems/5")
    assert meta["params"] == {"$expand": "relations", "api-version": API_VERSION}
    assert meta["timeout"] == 30


def test_update_work_item_sends_json_patch():
    client, session = _client([DummyResponse(200, {"id": 5, "rev": 2})])
    client.update_work_item(5, {"System.State": "Closed", "System.Tags": "a; b"})

    method, _, meta = session.request_log[0]
    assert method == "PATCH"
    assert meta["headers"]["Content-Type"] == "application/json-patch+json"
    assert meta["json"] == [
        {"op": "add", "path": "/fields/System.State", "value": "Closed"},
        {"op": "add", "path": "/fields/System.Tags", "value": "a; b"},
    ]


def test_add_comment_uses_preview_api():
    client, session = _client([DummyResponse(200, {"id": 1})])
    client.add_comment(5, "hello")
    method, url, meta = session.request_log[0]
    assert method == "POST"
    assert url.endswith("/_apis/wit/workItems/5/comments")
    assert meta["json"] == {"text": "hello"}
    assert meta["params"]["api-version"].endswith("preview.4")


def test_current_user_prefers_account_name():
    client, _ = _client(
        [
            DummyResponse(
                200,
                {
                    "authenticatedUser": {
                        "providerDisplayName": "Jane Doe",
                        "properties": {"Account": {"$type": "System.String", "$value": "jane@acme.com"}},
                    }
                },
            ),
            DummyResponse(200, {"authenticatedUser": {"providerDisplayName": "Jane Doe"}}),
        ]
    )
    assert client.current_user() == "jane@acme.com"
    assert client.current_user() == "Jane Doe"


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (401, AuthenticationError),
        (403, AuthorizationError),
        (404, NotFoundError),
        (429, TransientError),
        (503, TransientError),
        (400, AzureDevOpsAPIError),
    ],
)
def test_status_codes_map_to_errors(status, expected):
    client, _ = _client([DummyResponse(status, {"message": "nope"})])
    with pytest.raises(expected):
        client.get_work_item(5)


def test_unclassified_error_keeps_status_and_body():
    client, _ = _client([DummyResponse(400, {"message": "TF401320: rule error"})])
    with pytest.raises(AzureDevOpsAPIError) as excinfo:
        client.update_work_item(5, {"System.State": "Bogus"})
    assert excinfo.value.status == 400
    assert "TF401320" in (excinfo.value.response_text or "")


def test_network_failures_are_transient():
    client, _ = _client([requests.ConnectionError("reset"), requests.Timeout("slow")])
    with pytest.raises(TransientError, match="connection failed"):
        client.get_work_item(5)
    with pytest.raises(TransientError, match="timed out"):
        client.get_work_item(5)


def test_malformed_responses():
    client, _ = _client([DummyResponse(200, ValueError("no json")), DummyResponse(200, {"value": []})])
    with pytest.raises(MalformedResponseError, match="not JSON"):
        client.get_work_item(5)
    with pytest.raises(MalformedResponseError, match="missing id"):
        client.get_work_item(5)
