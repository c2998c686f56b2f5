"""Tests for the AssistantClient service."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from assistant_relay.services.assistant_client import (
    AssistantAPIError,
    AssistantClient,
    _operation_name,
)


def _client(assistant_id: str = "asst_test") -> AssistantClient:
    return AssistantClient("test-key", "https://api.example.test/v1", assistant_id=assistant_id)


class TestRequests:
    def test_sends_assistants_v2_headers(self):
        client = _client()
        assert client._client.headers["OpenAI-Beta"] == "assistants=v2"
        assert client._client.headers["Authorization"] == "Bearer test-key"

    def test_create_thread_returns_id(self, mock_http_response):
        client = _client()
        mock_req = AsyncMock(return_value=mock_http_response({"id": "thread_abc"}))
        with patch.object(client._client, "request", mock_req):
            assert asyncio.run(client.create_thread()) == "thread_abc"
        mock_req.assert_called_once_with("POST", "/threads", params=None, json={})

    def test_add_message_posts_user_content(self, mock_http_response):
        client = _client()
        mock_req = AsyncMock(return_value=mock_http_response({"id": "msg_1"}))
        with patch.object(client._client, "request", mock_req):
            asyncio.run(client.add_message("thread_abc", "hello"))
        args, kwargs = mock_req.call_args
        assert args == ("POST", "/threads/thread_abc/messages")
        assert kwargs["json"] == {"role": "user", "content": "hello"}

    def test_create_run_uses_configured_assistant(self, mock_http_response):
        client = _client("asst_42")
        mock_req = AsyncMock(return_value=mock_http_response({"id": "run_1"}))
        with patch.object(client._client, "request", mock_req):
            assert asyncio.run(client.create_run("thread_abc")) == "run_1"
        assert mock_req.call_args[1]["json"] == {"assistant_id": "asst_42"}

    def test_create_run_without_assistant_fails_before_calling(self):
        client = _client("")
        mock_req = AsyncMock()
        with patch.object(client._client, "request", mock_req):
            with pytest.raises(AssistantAPIError, match="No assistant configured"):
                asyncio.run(client.create_run("thread_abc"))
        mock_req.assert_not_called()

    def test_list_messages_newest_first_filtered_by_run(self, mock_http_response):
        client = _client()
        page = {"data": [{"id": "msg_2"}, {"id": "msg_1"}]}
        mock_req = AsyncMock(return_value=mock_http_response(page))
        with patch.object(client._client, "request", mock_req):
            messages = asyncio.run(client.list_messages("thread_abc", run_id="run_1"))
        assert [m["id"] for m in messages] == ["msg_2", "msg_1"]
        params = mock_req.call_args[1]["params"]
        assert params["order"] == "desc"
        assert params["run_id"] == "run_1"

    def test_submit_tool_outputs_sends_whole_batch(self, mock_http_response):
        client = _client()
        outputs = [
            {"tool_call_id": "call_1", "output": "{}"},
            {"tool_call_id": "call_2", "output": "{}"},
        ]
        mock_req = AsyncMock(return_value=mock_http_response({"id": "run_1"}))
        with patch.object(client._client, "request", mock_req):
            asyncio.run(client.submit_tool_outputs("thread_abc", "run_1", outputs))
        mock_req.assert_called_once()
        args, kwargs = mock_req.call_args
        assert args[1] == "/threads/thread_abc/runs/run_1/submit_tool_outputs"
        assert kwargs["json"] == {"tool_outputs": outputs}


class TestErrors:
    @pytest.mark.parametrize("status_code", [400, 404, 429, 500, 503])
    def test_non_2xx_raises_without_retry(self, mock_http_response, status_code):
        client = _client()
        mock_req = AsyncMock(return_value=mock_http_response({"error": {"message": "nope"}}, status_code))
        with patch.object(client._client, "request", mock_req):
            with pytest.raises(AssistantAPIError) as exc_info:
                asyncio.run(client.retrieve_run("thread_abc", "run_1"))
        assert exc_info.value.status_code == status_code
        assert mock_req.call_count == 1

    def test_transport_error_is_wrapped(self):
        client = _client()
        mock_req = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        with patch.object(client._client, "request", mock_req):
            with pytest.raises(AssistantAPIError) as exc_info:
                asyncio.run(client.retrieve_run("thread_abc", "run_1"))
        assert exc_info.value.status_code is None
        assert "ConnectError" in str(exc_info.value)

    def test_timeout_is_wrapped(self):
        client = _client()
        mock_req = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        with patch.object(client._client, "request", mock_req):
            with pytest.raises(AssistantAPIError):
                asyncio.run(client.create_thread())

    @pytest.mark.parametrize("body", [{}, {"id": None}, {"object": "thread"}, []])
    def test_created_resource_without_id_raises(self, mock_http_response, body):
        client = _client()
        mock_req = AsyncMock(return_value=mock_http_response(body))
        with patch.object(client._client, "request", mock_req):
            with pytest.raises(AssistantAPIError, match="returned no id"):
                asyncio.run(client.create_thread())
            with pytest.raises(AssistantAPIError, match="returned no id"):
                asyncio.run(client.create_run("thread_abc"))


class TestOperationName:
    def test_ids_are_collapsed(self):
        assert (
            _operation_name("GET", "/threads/thread_abc123/runs/run_XyZ9")
            == "GET /threads/{thread}/runs/{run}"
        )

    def test_plain_path_unchanged(self):
        assert _operation_name("POST", "/threads") == "POST /threads"
