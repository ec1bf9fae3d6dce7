"""
Usage examples for the request broker.

Run with real credentials:

    MISTRAL_API_KEY=... CODESTRAL_API_KEY=... python -m mistral_router.examples
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from .broker import RequestBroker
from .config import RouterConfig
from .contracts import Result
from .errors import BothProvidersFailed, RouterError
from .logging import configure_logging

log = structlog.get_logger()

Printer = Callable[[str], None]


def _show(label: str, result: Result, out: Printer) -> None:
    out(f"{label}: {result.content}")
    out(f"Provider Used: {result.provider.value}")
    out("")


async def auto_detection_example(broker: RequestBroker, out: Printer = print) -> list[Result]:
    out("=== Auto-Detection Examples ===")
    # Routed to Mistral
    chat = await broker.route("Explain recursion in simple terms")
    _show("Chat Result", chat, out)
    # Routed to Codestral
    code = await broker.route("Write a TypeScript function to reverse a string")
    _show("Code Result", code, out)
    return [chat, code]


async def explicit_provider_example(broker: RequestBroker, out: Printer = print) -> list[Result]:
    out("=== Explicit Provider Examples ===")
    codestral = await broker.call_codestral(
        "Create a React component that displays a user profile",
        {"temperature": 0.3, "max_tokens": 1024},
    )
    _show("Codestral Result", codestral, out)
    mistral = await broker.call_mistral(
        "Analyze the pros and cons of using TypeScript vs JavaScript for large applications",
        {"temperature": 0.5, "max_tokens": 1500},
    )
    _show("Mistral Result", mistral, out)
    return [codestral, mistral]


async def code_completion_example(broker: RequestBroker, out: Printer = print) -> list[Result]:
    out("=== Code Completion Examples ===")
    completion = await broker.call_codestral(
        "function calculateFibonacci(n) {\n  if (n <= 1) return n;\n  return calculateFibonacci(n-1) + calculateFibonacci(",
        {"endpoint": "fim", "temperature": 0.1, "max_tokens": 512},
    )
    _show("Completion Result", completion, out)
    return [completion]


async def error_handling_example(broker: RequestBroker, out: Printer = print) -> list[Result]:
    out("=== Error Handling Examples ===")
    try:
        result = await broker.route("Write a complex algorithm for pathfinding")
    except BothProvidersFailed as e:
        out(f"Both providers failed: {e}")
        return []
    out(f"Result with Fallback: {result.content}")
    out(f"Final Provider: {result.provider.value}")
    out("")
    return [result]


async def configuration_example(broker: RequestBroker, out: Printer = print) -> list[Result]:
    out("=== Configuration Examples ===")
    creative = await broker.route(
        "Write a creative story about AI and humanity",
        {"model": "mistral-large-latest", "temperature": 0.9, "max_tokens": 1000},
    )
    _show("Creative Result", creative, out)
    precise = await broker.route(
        "Implement a binary search algorithm in Python with type hints",
        {"model": "codestral-latest", "temperature": 0.1, "max_tokens": 800},
    )
    _show("Precise Code Result", precise, out)
    return [creative, precise]


EXAMPLES: tuple[Callable[[RequestBroker, Printer], Awaitable[list[Result]]], ...] = (
    auto_detection_example,
    explicit_provider_example,
    code_completion_example,
    error_handling_example,
    configuration_example,
)


async def run_examples(broker: RequestBroker, out: Printer = print) -> bool:
    try:
        for example in EXAMPLES:
            await example(broker, out)
    except RouterError as e:
        log.error("example_failed", error_type=type(e).__name__, error=str(e))
        out(f"Example failed: {e}")
        return False
    out("All examples completed successfully!")
    return True


async def _main() -> int:  # pragma: no cover
    cfg = RouterConfig()
    configure_logging(level=cfg.log_level, fmt="console", secrets=cfg.secrets())
    async with RequestBroker(cfg) as broker:
        ok = await run_examples(broker)
    return 0 if ok else 1


def main() -> None:  # pragma: no cover
    raise SystemExit(asyncio.run(_main()))


if __name__ == "__main__":  # pragma: no cover
    main()
