"""Command line entry point for issuing and inspecting tokens."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

import redis.asyncio as redis
from dotenv import load_dotenv

from tenant_auth.config import Settings, get_settings
from tenant_auth.errors import TokenError, TokenExpiredError
from tenant_auth.sessions.manager import create_session_manager
from tenant_auth.store.redis_store import create_redis_client
from tenant_auth.tokens.engine import TokenEngine, create_token_engine
from tenant_auth.tokens.models import TokenType

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()

    log_format = (
        '{"time": "%(asctime)s", "level": "%(levelname)s", '
        '"logger": "%(name)s", "message": "%(message)s"}'
        if settings.log_format == "json"
        else "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format=log_format,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tenant-auth",
        description="Issue, inspect and revoke tenant access tokens",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    issue = commands.add_parser("issue", help="Issue an access and refresh token")
    issue.add_argument("--subject", required=True, help="Subject (user) ID")
    issue.add_argument("--tenant", default="", help="Tenant (agent) ID")
    issue.add_argument("--tenant-type", default="", help="Tenant (agent) type")
    issue.add_argument("--device", default="", help="Device description for the session")
    issue.add_argument("--ip", default="", help="Client IP address for the session")

    inspect = commands.add_parser("inspect", help="Show token expiry information")
    inspect.add_argument("token", help="Token string")
    inspect.add_argument(
        "--type",
        choices=[t.value for t in TokenType],
        default=None,
        help="Expected token type (tried access, then refresh, if omitted)",
    )

    revoke = commands.add_parser("revoke-all", help="Revoke every refresh token of a subject")
    revoke.add_argument("--subject", required=True, help="Subject (user) ID")

    return parser


def _expires_in(engine: TokenEngine, token: str, token_type: TokenType) -> int:
    return int(engine.get_token_remaining_time(token, token_type).total_seconds())


async def _issue(
    args: argparse.Namespace,
    engine: TokenEngine,
    settings: Settings,
    client: redis.Redis | None,
) -> dict[str, Any]:
    session_id = None
    if engine.is_stateful():
        manager = create_session_manager(engine, settings, redis_client=client)
        tokens = await manager.generate_tokens_with_session(
            args.subject, args.tenant, args.tenant_type, args.device, args.ip
        )
        access_token, refresh_token, session_id = tokens
    else:
        access_token, refresh_token = await engine.generate_token_pair(
            args.subject, args.tenant, args.tenant_type
        )

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "session_id": session_id,
        "access_token_expires_in": _expires_in(engine, access_token, TokenType.ACCESS),
        "refresh_token_expires_in": _expires_in(engine, refresh_token, TokenType.REFRESH),
    }


def _inspect(args: argparse.Namespace, engine: TokenEngine) -> dict[str, Any]:
    token_type = TokenType(args.type) if args.type else None
    claims = engine.inspect_token(args.token, token_type)
    try:
        remaining = _expires_in(engine, args.token, claims.token_type)
    except TokenExpiredError:
        remaining = 0

    return {
        "token_type": claims.token_type.value,
        "subject_id": claims.subject_id,
        "tenant_id": claims.tenant_id,
        "tenant_type": claims.tenant_type,
        "token_id": claims.token_id,
        "expires_at": claims.expires_at.isoformat(),
        "remaining_seconds": remaining,
        "expired": engine.is_token_expired(args.token, claims.token_type),
    }


async def run(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    """Run one CLI command.

    Args:
        args: Parsed arguments.
        settings: Application settings.

    Returns:
        JSON-serializable command result.
    """
    client = create_redis_client(settings) if settings.token_stateful else None
    engine = create_token_engine(settings, redis_client=client)

    try:
        if args.command == "issue":
            return await _issue(args, engine, settings, client)
        if args.command == "inspect":
            return _inspect(args, engine)
        revoked = await engine.revoke_all_refresh_tokens(args.subject)
        return {"subject_id": args.subject, "revoked": revoked}
    finally:
        if client is not None:
            await client.aclose()


def main(argv: list[str] | None = None) -> int:
    """Run the tenant-auth CLI.

    Args:
        argv: Command line arguments (defaults to ``sys.argv``).

    Returns:
        Process exit code.
    """
    # Load environment variables from .env file
    load_dotenv()

    setup_logging()

    args = build_parser().parse_args(argv)
    settings = get_settings()

    try:
        result = asyncio.run(run(args, settings))
    except TokenError as e:
        logger.error("Command %s failed: %s", args.command, e)
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
