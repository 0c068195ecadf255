import argparse
import asyncio
import json
import sys
from typing import Optional

from rich import print as rprint
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from . import config
from .api.database import engine, init_db
from .api.store import SqlPolicyStore
from .core.versioning import BASELINE_VERSION, canonical_version, is_valid_version, try_parse_version
from .gate.config_provider import ConfigProvider
from .gate.policy import VersionPolicy
from .gate.version_gate import GateMode, VersionGate


def _open_store(db_engine: Optional[AsyncEngine]) -> SqlPolicyStore:
    return SqlPolicyStore(
        async_sessionmaker(db_engine or engine, class_=AsyncSession, expire_on_commit=False)
    )


async def show_policy(db_engine: Optional[AsyncEngine] = None) -> int:
    """
    Resolve the policy the gate would use right now and print it.

    Returns:
        int: Exit code
    """
    provider = ConfigProvider(_open_store(db_engine))
    policy = await provider.resolve_policy()
    rprint(json.dumps(policy.to_client_dict(), indent=2))
    return 0


async def set_policy(
    minimum: Optional[str],
    latest: Optional[str],
    ota_url: Optional[str],
    force_update: Optional[bool],
    db_engine: Optional[AsyncEngine] = None,
) -> int:
    """
    Write policy fields to the store.

    The new values are checked against the stored document, so the result
    never has latest below minimum. Running servers pick the change up when
    their policy cache expires.

    Returns:
        int: Exit code (0 for success, 1 for invalid input)
    """
    for name, value in (("--minimum", minimum), ("--latest", latest)):
        if value is not None and not is_valid_version(value):
            rprint(f"[bold red]{name} must be a semantic version such as 2.0.0")
            return 1

    fields = {
        "minimum_required_version": canonical_version(minimum) if minimum is not None else None,
        "latest_version": canonical_version(latest) if latest is not None else None,
        "ota_url": ota_url,
        "force_update": force_update,
    }
    fields = {k: v for k, v in fields.items() if v is not None}
    if not fields:
        rprint("[bold red]Nothing to update")
        return 1

    await init_db(db_engine or engine)
    store = _open_store(db_engine)
    merged = {**(await store.get_policy() or {}), **fields}
    merged_minimum = try_parse_version(merged.get("minimum_required_version"))
    merged_latest = try_parse_version(merged.get("latest_version"))
    if merged_minimum is not None and merged_latest is not None and merged_latest < merged_minimum:
        rprint(
            f"[bold red]latest {merged['latest_version']} must not be lower than "
            f"minimum {merged['minimum_required_version']}"
        )
        return 1

    document = await store.update_policy(**fields)
    rprint("[bold green]Policy updated")
    rprint(json.dumps(document, indent=2))
    return 0


def check(
    headers: dict[str, str],
    minimum: str,
    mode: str,
) -> int:
    """
    Evaluate a hypothetical request against a minimum version, offline.

    Returns:
        int: 0 when admitted, 2 when blocked
    """
    gate = VersionGate.for_mode(mode)
    verdict = gate.evaluate(headers, VersionPolicy(minimum_required_version=minimum, latest_version=minimum))
    kind = verdict.client_kind.value if verdict.client_kind else "unknown"
    if verdict.admitted:
        rprint(f"[bold green]admitted[/] ({verdict.reason.value}, client={kind})")
        return 0
    rprint(f"[bold red]blocked {verdict.status_code}[/] ({verdict.reason.value}, client={kind})")
    rprint(json.dumps(verdict.block_payload, indent=2, ensure_ascii=False))
    return 2


def main() -> int:
    """
    Command-line interface (CLI) entry point for versiongate.
    """
    parser = argparse.ArgumentParser(description="Client version admission gate")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    subparsers.add_parser("serve", help="Run the API server")

    # Show-policy command
    subparsers.add_parser("show-policy", help="Print the effective version policy")

    # Set-policy command
    set_parser = subparsers.add_parser("set-policy", help="Update the stored version policy")
    set_parser.add_argument("--minimum", type=str, help="Minimum required client version")
    set_parser.add_argument("--latest", type=str, help="Latest published client version")
    set_parser.add_argument("--ota-url", type=str, help="Where clients download updates")
    set_parser.add_argument(
        "--force-update",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Whether clients must treat updates as mandatory",
    )

    # Check command
    check_parser = subparsers.add_parser("check", help="Evaluate request headers against a minimum version")
    check_parser.add_argument("--user-agent", type=str, default="")
    check_parser.add_argument("--origin", type=str, default="")
    check_parser.add_argument("--referer", type=str, default="")
    check_parser.add_argument("--app-version", type=str, default="")
    check_parser.add_argument(
        "--minimum",
        type=str,
        default=BASELINE_VERSION,
        help=f"Minimum required version (default: {BASELINE_VERSION})",
    )
    check_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in GateMode] + ["strict", "permissive"],
        default="strict",
    )

    args = parser.parse_args()

    if args.command == "show-policy":
        return asyncio.run(show_policy())
    elif args.command == "set-policy":
        return asyncio.run(set_policy(args.minimum, args.latest, args.ota_url, args.force_update))
    elif args.command == "check":
        if not is_valid_version(args.minimum):
            rprint("[bold red]--minimum must be a semantic version such as 2.0.0")
            return 1
        headers = {
            "User-Agent": args.user_agent,
            "Origin": args.origin,
            "Referer": args.referer,
            "X-App-Version": args.app_version,
        }
        return check(headers, canonical_version(args.minimum), args.mode)
    else:
        # Default to serving if no command specified
        from .api.main import run
        rprint(f"Serving on {config.API_HOST}:{config.API_PORT}")
        run()
        return 0


if __name__ == "__main__":
    sys.exit(main())
