from __future__ import annotations

import httpx
import pytest

from core.entities import AuthOutcome
from service.tenant_router_service import TenantRouter, _end_to_end, build_instance_name
from util.enums import RoutingMode


def _router(template: str = "http://127.0.0.1:8080", generation: str = "gen-1") -> TenantRouter:
    return TenantRouter("serena-mcp", generation, template, httpx.AsyncClient())


def test_route_single_token_uses_singleton_instance():
    outcome = AuthOutcome(matched=True, routing_key="singleton", mode=RoutingMode.SINGLE)
    assert _router().route(outcome) == "serena-mcp-singleton-gen-1"


def test_route_follows_generation():
    outcome = AuthOutcome(matched=True, routing_key="tok-0123456789abcdef", mode=RoutingMode.MULTI)
    assert _router(generation="gen-7").route(outcome) == "serena-mcp-tok-0123456789abcdef-gen-7"


def test_instance_name_joins_prefix_key_and_generation():
    assert build_instance_name("serena-mcp", "<route-key>", "gen-2") == "serena-mcp-<route-key>-gen-2"


@pytest.mark.parametrize(
    "template, path, query, expected",
    [
        ("http://127.0.0.1:8080", "/mcp", "", "http://127.0.0.1:8080/mcp"),
        ("http://127.0.0.1:8080/", "/mcp", "a=1", "http://127.0.0.1:8080/mcp?a=1"),
        ("http://{instance}:8080", "/mcp/x", "", "http://serena-mcp-singleton-gen-1:8080/mcp/x"),
        (
            "https://{instance}.backends.internal",
            "/mcp",
            "",
            "https://serena-mcp-singleton-gen-1.backends.internal/mcp",
        ),
    ],
)
def test_backend_url(template, path, query, expected):
    assert _router(template).backend_url("serena-mcp-singleton-gen-1", path, query) == expected


def test_hop_by_hop_headers_are_dropped():
    kept = _end_to_end(
        [
            ("Host", "edge.example"),
            ("Connection", "keep-alive"),
            ("Transfer-Encoding", "chunked"),
            ("Authorization", "Bearer x"),
            ("Mcp-Session-Id", "abc"),
            ("Content-Type", "application/json"),
        ]
    )
    assert kept == {
        "Authorization": "Bearer x",
        "Mcp-Session-Id": "abc",
        "Content-Type": "application/json",
    }


def test_generation_bump_changes_only_the_suffix():
    outcome = AuthOutcome(matched=True, routing_key="tok-0123456789abcdef", mode=RoutingMode.MULTI)
    before = _router(generation="gen-1").route(outcome)
    after = _router(generation="gen-2").route(outcome)
    assert before != after
    assert before.rsplit("-", 1)[0] == after.rsplit("-", 1)[0]
