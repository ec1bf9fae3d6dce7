from __future__ import annotations

from prometheus_client import Counter, Histogram, start_http_server

server_requests_total = Counter(
    "router_server_requests_total",
    "Total HTTP requests handled by the test server",
    labelnames=["path", "status"],
)

server_errors_total = Counter(
    "router_server_errors_total",
    "Total broker errors surfaced by the test server",
    labelnames=["type"],
)

upstream_circuit_breaker_events_total = Counter(
    "router_upstream_circuit_breaker_events_total",
    "Circuit breaker events",
    labelnames=["provider", "event"],
)

requests_total = Counter(
    "router_provider_requests_total",
    "Total provider calls issued by the broker",
    labelnames=["provider", "status"],
)

request_latency_seconds = Histogram(
    "router_provider_request_latency_seconds",
    "Provider call latency",
    buckets=[0.1, 0.3, 0.5, 1, 2, 5, 10, 30, 60],
    labelnames=["provider"],
)

routing_decisions_total = Counter(
    "router_routing_decisions_total",
    "Provider selections made by route()",
    labelnames=["provider", "reason"],
)

fallbacks_total = Counter(
    "router_fallbacks_total",
    "Substitutions of the other provider after a primary failure",
    labelnames=["from_provider", "to_provider", "outcome"],
)


def maybe_start_metrics(*, enable: bool, bind: str, port: int) -> None:
    if not enable:
        return
    start_http_server(port, addr=bind)
