from __future__ import annotations

import argparse
import math
from datetime import datetime, timezone
from typing import Annotated, Any

import structlog
from mcp.server.fastmcp import FastMCP
from pydantic import Field
from starlette.requests import Request
from starlette.responses import JSONResponse

from .config import Settings, Transport, load_settings
from .errors import ParseError
from .history import RollHistory
from .logging import setup_logging
from .models import (
    MAX_DICE_COUNT,
    MAX_DICE_SIDES,
    MAX_EXPRESSION_LENGTH,
    MAX_NESTING_DEPTH,
    MAX_NUMBER,
    MAX_OUTCOME_SPACE,
    MAX_RESULT_DIGITS,
    RollOutcome,
)
from .parser import parse
from .ratelimit import RateLimiter


VERSION = "0.1.0"

TRANSPORTS: tuple[Transport, ...] = ("stdio", "sse", "streamable-http")

_EXPRESSION_HELP = """Dice expression to evaluate. Supported notation:
- Basic: 2d6, d20, d% (percentile), 4dF (Fudge dice)
- Keep/Drop: 4d6k3 (keep highest 3), 5d8d2 (drop lowest 2)
- Exploding: 3d6! (explode on max), 2d10e8 (explode on 8+)
- Reroll: 4d6r1 (reroll results of 1 or less, once)
- Math: d20+5, 2d6+1d4-2, 3*(2d6+1)
- Complex: (2d6+3)*2+1d4-3d8k2"""

_EXAMPLES = """Examples:
- Basic: `2d6`, `d20`, `d%`, `4dF`
- Modifiers: `4d6k3`, `3d6!`, `2d10e8`, `4d6r1`
- Math: `d20+5`, `2d6+1d4-2`, `3*(2d6+1)`
- Complex: `(2d6+3)*2+1d4`, `3d8k2+d4`"""

NOTATION: dict[str, str] = {
    "basic": "NdX (e.g. 2d6, d20, d%)",
    "fudge": "NdF (FATE dice: -1, 0, +1)",
    "keep_drop": "NdXkY (keep highest Y), NdXdY (drop lowest Y)",
    "exploding": "NdX! (explode on max), NdXeY (explode on Y+)",
    "reroll": "NdXrY (reroll once if result <= Y)",
    "math": "+, -, * (also x and middle dot), parentheses",
}


log = structlog.get_logger()

settings = load_settings()

mcp = FastMCP(
    settings.server_name,
    instructions=(
        "Rolls dice from tabletop notation. Call the 'roll' tool with an expression "
        "such as '4d6k3' or '(2d6+3)*2'; 'roll_history' lists your recent rolls."
    ),
    host=settings.host,
    port=settings.port,
)

_limiter: RateLimiter | None = None
_history: RollHistory | None = None


def configure(new_settings: Settings) -> None:
    """Rebuild the rate limiter and history store from ``new_settings``."""

    global settings, _limiter, _history

    if _history is not None:
        _history.close()

    settings = new_settings
    _limiter = (
        RateLimiter(
            per_minute=new_settings.rate_limit_per_minute,
            per_hour=new_settings.rate_limit_per_hour,
            per_day=new_settings.rate_limit_per_day,
        )
        if new_settings.rate_limit_enabled
        else None
    )
    _history = (
        RollHistory(new_settings.database_url, max_entries=new_settings.history_max_entries)
        if new_settings.history_enabled
        else None
    )


configure(settings)


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _client_id() -> str:
    """Identify the caller: peer IP over HTTP, ``local`` over stdio."""

    try:
        request = getattr(mcp.get_context().request_context, "request", None)
    except (LookupError, ValueError):
        return "local"
    if not isinstance(request, Request):
        return "local"

    return identify_request(request)


def identify_request(request: Request) -> str:
    if settings.trust_forwarded_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        cf_ip = request.headers.get("cf-connecting-ip")
        if cf_ip:
            return cf_ip.strip()
    if request.client is not None:
        return request.client.host
    return "local"


def format_roll(outcome: RollOutcome, description: str | None = None) -> str:
    text = f"🎲 **{outcome.expression}**"
    if description:
        text += f" *({description})*"
    return text + f"\n\n{outcome.breakdown}\n\n**Result: {outcome.total}**"


@mcp.tool()
def roll(
    expression: Annotated[str, Field(description=_EXPRESSION_HELP)],
    description: Annotated[
        str | None,
        Field(description="Optional label for the roll (e.g. 'Attack roll', 'Damage')"),
    ] = None,
) -> str:
    """Roll dice using advanced notation.

    Supports keep/drop, exploding, reroll, percentile and Fudge dice combined
    with +, -, * and parentheses.

    Raises a hard error (exception) on invalid input or when rate limited.
    """

    client_id = _client_id()

    if _limiter is not None:
        decision = _limiter.check(client_id)
        if not decision.allowed:
            log.warning(
                "server.roll.rate_limited",
                client_id=client_id,
                window=decision.window,
                limit=decision.limit,
            )
            retry = math.ceil(decision.retry_after or 0)
            raise ValueError(
                f"[RATE_LIMITED] Too many rolls this {decision.window} "
                f"(limit {decision.limit}). Try again in {retry}s."
            )

    try:
        outcome = parse(expression)
    except ParseError as e:
        log.info("server.roll.rejected", client_id=client_id, code=e.code, position=e.position)
        # Fail-fast: surface stable error codes in the message.
        raise ValueError(f"Invalid dice expression: {e}\n\n{_EXAMPLES}") from None

    if _history is not None:
        _history.record(client_id, outcome, description)

    log.info(
        "server.roll.ok",
        client_id=client_id,
        expression=outcome.expression,
        total=outcome.total,
    )
    return format_roll(outcome, description)


@mcp.tool()
def roll_history(
    limit: Annotated[int, Field(ge=1, description="How many recent rolls to return")] = 10,
) -> list[dict[str, Any]]:
    """List your most recent rolls, newest first."""

    if _history is None:
        raise ValueError("[HISTORY_DISABLED] Roll history is not enabled on this server.")

    limit = min(limit, settings.history_max_entries)
    return [entry.as_dict() for entry in _history.recent(_client_id(), limit)]


@mcp.custom_route("/health", methods=["GET"])
async def health(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "status": "healthy",
            "timestamp": _now_utc_iso(),
            "version": VERSION,
            "transports": list(TRANSPORTS),
        }
    )


@mcp.custom_route("/info", methods=["GET"])
async def info(request: Request) -> JSONResponse:
    return JSONResponse(
        {
            "name": settings.server_name,
            "version": VERSION,
            "description": "A Model Context Protocol server for rolling dice with advanced notation",
            "transports": list(TRANSPORTS),
            "endpoints": {
                "streamable_http": mcp.settings.streamable_http_path,
                "sse": mcp.settings.sse_path,
                "messages": mcp.settings.message_path,
                "health": "/health",
                "info": "/info",
            },
            "tools": ["roll", "roll_history"],
            "rate_limit": {
                "enabled": _limiter is not None,
                "per_minute": settings.rate_limit_per_minute,
                "per_hour": settings.rate_limit_per_hour,
                "per_day": settings.rate_limit_per_day,
            },
            "history": {"enabled": _history is not None},
            "dice_notation": NOTATION,
            "limits": {
                "dice_count": MAX_DICE_COUNT,
                "dice_sides": MAX_DICE_SIDES,
                "numbers": MAX_NUMBER,
                "outcome_space": MAX_OUTCOME_SPACE,
                "nesting_depth": MAX_NESTING_DEPTH,
                "expression_length": MAX_EXPRESSION_LENGTH,
                "result_digits": MAX_RESULT_DIGITS,
            },
        }
    )


def run(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Dice rolling MCP server.")
    parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default=settings.transport,
        help="Transport protocol to use (defaults to stdio, which works well for local MCP clients).",
    )
    parser.add_argument("--host", default=settings.host, help="Bind address for HTTP transports.")
    parser.add_argument("--port", type=int, default=settings.port, help="Port for HTTP transports.")
    parser.add_argument("--log-level", default=settings.log_level, help="Log level (e.g. DEBUG, INFO).")
    args = parser.parse_args(argv)

    setup_logging(settings.model_copy(update={"log_level": args.log_level}))

    mcp.settings.host = args.host
    mcp.settings.port = args.port

    log.info(
        "server.start",
        transport=args.transport,
        host=args.host,
        port=args.port,
        rate_limit=_limiter is not None,
        history=_history is not None,
    )
    mcp.run(transport=args.transport)


if __name__ == "__main__":
    run()
