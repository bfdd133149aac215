#!/usr/bin/env python3
"""
CLI tool for inspecting and driving the idea workflow.

Usage:
    python -m ideaflow.cli ideas --status Pending
    python -m ideaflow.cli trail 42
    python -m ideaflow.cli set-status 42 Approved
    python -m ideaflow.cli token
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from colorama import Fore, Style, init as colorama_init

from .config import Config
from .gateway.client import SecureApiClient
from .gateway.errors import GatewayError
from .reconcile.engine import ReconciliationEngine
from .services.ideas import IdeaService
from .services.users import UserService
from .validation import ValidationError
from .workflow.types import AuditEventKind, IdeaStatus

colorama_init()

STATUS_COLORS = {
    IdeaStatus.PENDING: Fore.YELLOW,
    IdeaStatus.APPROVED: Fore.GREEN,
    IdeaStatus.REJECTED: Fore.RED,
    IdeaStatus.IN_PROGRESS: Fore.BLUE,
    IdeaStatus.COMPLETED: Fore.MAGENTA,
}


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def format_status(status: IdeaStatus) -> str:
    return colorize(status.value, STATUS_COLORS.get(status, ""))


def load_config(args) -> Config:
    """Config file first, then command-line overrides."""
    config = Config.from_yaml(args.config) if args.config else Config()
    if args.base_url:
        config.backend.base_url = args.base_url
    for header in args.header or []:
        name, _, value = header.partition(":")
        config.backend.headers[name.strip()] = value.strip()
    if args.log_level:
        config.logging.level = args.log_level
    return config


async def cmd_ideas(config: Config, args) -> int:
    """List ideas."""
    service = IdeaService(SecureApiClient.from_config(config), config.backend.lists)
    status_filter = f"Status eq '{IdeaStatus(args.status).value}'" if args.status else None
    ideas = await service.get_ideas(status_filter)

    if not ideas:
        print(colorize("No ideas found", Style.DIM))
        return 0

    for idea in ideas:
        author = idea.created_by.name if idea.created_by else "Unknown"
        print(
            f"{colorize(f'#{idea.id}', Fore.CYAN)} {idea.title} "
            f"[{format_status(idea.status)}] {colorize(author, Style.DIM)}"
        )
    print(colorize(f"\n{len(ideas)} idea(s)", Style.BRIGHT))
    return 0


async def cmd_trail(config: Config, args) -> int:
    """Show the audit trail of an idea."""
    service = IdeaService(SecureApiClient.from_config(config), config.backend.lists)
    events = await service.get_audit_events(args.idea_id)

    if not events:
        print(colorize(f"No trail events for idea {args.idea_id}", Style.DIM))
        return 0

    for event in events:
        kind = event.kind.value if isinstance(event.kind, AuditEventKind) else event.kind
        print(f"{colorize(event.timestamp.isoformat(timespec='seconds'), Style.DIM)} "
              f"{colorize(kind, Fore.CYAN)} {event.title} - {event.actor}")
        if event.previous_status or event.new_status:
            print(f"    {event.previous_status or '-'} -> {event.new_status or '-'}")
        if event.comments:
            print(f"    {event.comments}")
    return 0


async def cmd_set_status(config: Config, args) -> int:
    """Change an idea's status through the reconciliation engine."""
    client = SecureApiClient.from_config(config)
    users = UserService(client)
    engine = ReconciliationEngine(
        ideas=IdeaService(client, config.backend.lists),
        users=users,
        actor=await users.get_current_user(),
        config=config.workflow,
    )

    await engine.load_ideas()
    if engine.state.errors["ideas"]:
        print(colorize(f"Error: {engine.state.errors['ideas']}", Fore.RED), file=sys.stderr)
        return 1

    try:
        idea = await engine.apply_status_change(
            args.idea_id, args.status, skip_reconcile=args.no_reconcile
        )
    finally:
        await engine.aclose()

    print(f"{colorize(f'#{idea.id}', Fore.CYAN)} {idea.title} -> {format_status(idea.status)}")
    if engine.stats["audit_failures"]:
        print(colorize("Warning: audit trail entry could not be written", Fore.YELLOW))
    return 0


async def cmd_token(config: Config, args) -> int:
    """Negotiate a form digest (connectivity check)."""
    client = SecureApiClient.from_config(config)
    digest = await client.tokens.acquire_token()
    shown = digest if args.full else f"{digest[:16]}..."
    print(colorize("Form digest:", Style.BRIGHT), shown)
    return 0


COMMANDS = {
    "ideas": cmd_ideas,
    "trail": cmd_trail,
    "set-status": cmd_set_status,
    "token": cmd_token,
}


def main():
    parser = argparse.ArgumentParser(
        description="CLI tool for the idea workflow",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--base-url", help="Site URL of the list platform")
    parser.add_argument(
        "--header",
        action="append",
        help="Extra request header as 'Name: value' (repeatable)",
    )
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # ideas command
    ideas_parser = subparsers.add_parser("ideas", help="List ideas")
    ideas_parser.add_argument(
        "--status",
        choices=[s.value for s in IdeaStatus],
        help="Only ideas with this status",
    )

    # trail command
    trail_parser = subparsers.add_parser("trail", help="Show an idea's audit trail")
    trail_parser.add_argument("idea_id", type=int, help="Idea ID")

    # set-status command
    status_parser = subparsers.add_parser("set-status", help="Change an idea's status")
    status_parser.add_argument("idea_id", type=int, help="Idea ID")
    status_parser.add_argument("status", choices=[s.value for s in IdeaStatus], help="New status")
    status_parser.add_argument(
        "--no-reconcile",
        action="store_true",
        help="Skip the follow-up refresh from the server",
    )

    # token command
    token_parser = subparsers.add_parser("token", help="Fetch a form digest")
    token_parser.add_argument("--full", action="store_true", help="Print the whole digest")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    config = load_config(args)
    logging.basicConfig(level=config.logging.level.upper(), format=config.logging.format)

    try:
        return asyncio.run(COMMANDS[args.command](config, args))
    except (GatewayError, ValidationError) as e:
        print(colorize(f"Error: {e}", Fore.RED), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
