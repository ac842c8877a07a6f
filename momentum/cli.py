#!/usr/bin/env python
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

from momentum.application import DomainStore, Fulfilled, MomentumService, RequestLifecycleTracker, Settlement
from momentum.config import Settings, configure_logging, load_settings
from momentum.core.schema import (
    BLOCKER_CATEGORIES,
    BLOCKER_SEVERITIES,
    BLOCKER_STATUSES,
    BlockerQuery,
    ProfileUpdate,
    WireModel,
)
from momentum.domain.state import TeamOverview
from momentum.infrastructure import FileTokenStore, MomentumApiClient


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="momentum", description="Momentum blocker tracker client")
    parser.add_argument("--config", type=Path, help="YAML settings file")
    parser.add_argument("--api-url", help="override the API base URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="log at DEBUG level")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="store a bearer token and fetch the profile")
    login.add_argument("token")
    commands.add_parser("logout", help="forget the stored token")
    commands.add_parser("whoami", help="show the signed-in user")

    blockers = commands.add_parser("blockers", help="list blockers")
    scope = blockers.add_mutually_exclusive_group()
    scope.add_argument("--team")
    scope.add_argument("--member")
    blockers.add_argument("--category", choices=BLOCKER_CATEGORIES)
    blockers.add_argument("--severity", choices=BLOCKER_SEVERITIES)
    blockers.add_argument("--status", choices=BLOCKER_STATUSES)
    blockers.add_argument("--limit", type=_positive_int)

    stats = commands.add_parser("stats", help="show blocker statistics")
    stats.add_argument("--team")

    report = commands.add_parser("report", help="generate or list AI reports")
    report_commands = report.add_subparsers(dest="report_command", required=True)
    generate = report_commands.add_parser("generate")
    listing = report_commands.add_parser("list")
    for sub in (generate, listing):
        target = sub.add_mutually_exclusive_group()
        target.add_argument("--team")
        target.add_argument("--member")
    generate.add_argument("--period", choices=("weekly", "monthly"), default="weekly")

    profile = commands.add_parser("profile", help="edit the signed-in user's profile")
    profile.add_argument("--first-name")
    profile.add_argument("--last-name")
    profile.add_argument("--designation")
    profile.add_argument("--profile-pic")
    profile.add_argument("--joined-date", help="YYYY-MM-DD")

    team = commands.add_parser("team", help="team overview ranked by open blockers")
    team.add_argument("name")
    return parser


def _jsonable(value: Any) -> Any:
    if isinstance(value, WireModel):
        return value.to_wire()
    if isinstance(value, TeamOverview):
        return {
            "team": value.team,
            "summary": asdict(value.summary),
            "report_counts": value.report_counts,
            "members": [
                {"member": entry.member.to_wire(), "stats": entry.stats.to_wire() if entry.stats else None}
                for entry in value.members
            ],
        }
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def _emit(settlement: Settlement[Any]) -> int:
    if not settlement.ok:
        print(json.dumps({"error": settlement.error}, ensure_ascii=False), file=sys.stderr)
        return 1
    print(json.dumps(_jsonable(settlement.payload), indent=2, ensure_ascii=False))
    return 0


async def _dispatch(args: argparse.Namespace, service: MomentumService) -> int:
    if args.command == "login":
        return _emit(await service.sign_in(args.token))
    if args.command == "whoami":
        return _emit(await service.fetch_profile())
    if args.command == "profile":
        signed_in = await service.fetch_profile()
        if not signed_in.ok:
            return _emit(signed_in)
        changes = ProfileUpdate(
            first_name=args.first_name,
            last_name=args.last_name,
            designation=args.designation,
            profile_pic=args.profile_pic,
            joined_date=args.joined_date,
        )
        updated = await service.update_profile(changes)
        # The rotated token is already in the token file; only the user is printed.
        return _emit(Fulfilled(updated.payload.user) if updated.ok else updated)

    if args.command == "blockers":
        query = BlockerQuery(category=args.category, severity=args.severity, status=args.status, limit=args.limit)
        if args.team:
            return _emit(await service.fetch_team_blockers(args.team, query))
        if args.member:
            return _emit(await service.fetch_member_blockers(args.member, query))
        return _emit(await service.fetch_my_blockers(query))

    if args.command == "stats":
        if args.team:
            return _emit(await service.fetch_team_stats(args.team))
        return _emit(await service.fetch_my_stats())

    if args.command == "report":
        if args.report_command == "generate":
            if args.team:
                return _emit(await service.generate_team_report(args.team, args.period))
            if args.member:
                return _emit(await service.generate_member_report(args.member, args.period))
            return _emit(await service.generate_my_report(args.period))
        if args.team:
            return _emit(await service.fetch_team_reports(args.team))
        if args.member:
            return _emit(await service.fetch_member_reports(args.member))
        return _emit(await service.fetch_my_reports())

    if args.command == "team":
        return _emit(await service.load_team_overview(args.name))

    raise ValueError(f"unknown command {args.command!r}")


async def run(args: argparse.Namespace, settings: Settings) -> int:
    token_store = FileTokenStore(settings.token_path)
    store = DomainStore(token_store)

    if args.command == "logout":
        store.sign_out()
        print(json.dumps({"signedOut": True}))
        return 0

    async with MomentumApiClient(settings.api_url, token_store, timeout=settings.timeout) as client:
        tracker = RequestLifecycleTracker(store, stale_guard=settings.stale_guard)
        service = MomentumService(client, store, tracker=tracker)
        return await _dispatch(args, service)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.config)
    if args.api_url:
        settings = replace(settings, api_url=args.api_url)
    configure_logging("DEBUG" if args.verbose else settings.log_level)
    return asyncio.run(run(args, settings))


if __name__ == "__main__":
    sys.exit(main())
