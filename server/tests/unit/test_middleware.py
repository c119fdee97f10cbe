"""Unit tests for request correlation middleware."""

import pytest

from charter.core.middleware import parse_traceparent, rpc_operation

TRACE_ID = "4bf92f3577b34da6a3ce929d0e0e4736"
TRACEPARENT = f"00-{TRACE_ID}-00f067aa0ba902b7-01"


def test_parse_traceparent():
    assert parse_traceparent(TRACEPARENT) == {
        "trace_id": TRACE_ID,
        "parent_id": "00f067aa0ba902b7",
        "flags": "01",
    }


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "garbage",
        f"01-{TRACE_ID}-00f067aa0ba902b7-01",
        f"00-{'0' * 32}-00f067aa0ba902b7-01",
        f"00-{TRACE_ID}-{'0' * 16}-01",
    ],
)
def test_parse_traceparent_rejects_invalid(header):
    assert parse_traceparent(header) is None


def test_rpc_operation():
    assert rpc_operation("/v1/quote/accept") == "quote/accept"
    assert rpc_operation("/health") is None
    assert rpc_operation("/v2/quote/accept") is None


@pytest.mark.asyncio
async def test_request_id_and_trace_are_propagated(test_client):
    response = await test_client.post(
        "/v1/health/ping",
        json={},
        headers={"X-Request-ID": "req-123", "traceparent": TRACEPARENT},
    )

    assert response.headers["x-request-id"] == "req-123"
    assert response.headers["traceparent"].split("-")[1] == TRACE_ID


@pytest.mark.asyncio
async def test_request_id_generated_when_absent(test_client):
    response = await test_client.post("/v1/health/ping", json={})

    assert response.headers["x-request-id"]
    version, trace_id, span_id, flags = response.headers["traceparent"].split("-")
    assert version == "00"
    assert len(trace_id) == 32
    assert len(span_id) == 16
