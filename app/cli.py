"""Operator CLI for access provisioning outside of the token flow.

Commands:
    reconcile      run the full reconciliation for one username
    resolve-roles  show which roles the directory grants a username

Usage:
    token-proxy-provision reconcile --username jdoe --email jdoe@example.org
    python -m app.cli --operator alice resolve-roles --username jdoe
"""
from __future__ import annotations
import argparse
import json
import sys

from app.config import load_settings
from app.core.exceptions import ProvisioningError
from app.core.models import IdentityClaims
from app.core.provisioning_service import ProvisioningOrchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Directory-driven access provisioning helper")
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")

    sub = parser.add_subparsers(dest="cmd")

    rec = sub.add_parser("reconcile", help="Create or update the organization member for a user")
    rec.add_argument("--username", required=True)
    rec.add_argument("--given-name")
    rec.add_argument("--family-name")
    rec.add_argument("--email")

    res = sub.add_parser("resolve-roles", help="Print the roles granted by directory groups")
    res.add_argument("--username", required=True)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return

    cfg = load_settings()
    orchestrator = ProvisioningOrchestrator(cfg, operator=args.operator)

    if args.cmd == "reconcile":
        claims = IdentityClaims(
            subject=args.username,
            given_name=args.given_name,
            family_name=args.family_name,
            email=args.email,
        )
        try:
            member = orchestrator.provision(claims)
        except ProvisioningError as e:
            print(f"[reconcile] Error: {type(e).__name__}: {e}", file=sys.stderr)
            sys.exit(1)
        print(json.dumps({
            "name": member.name,
            "title": member.title,
            "url": member.url,
            "role_urls": list(member.role_urls),
        }, indent=2))
    elif args.cmd == "resolve-roles":
        try:
            roles = orchestrator.resolve_user_roles(args.username)
        except ProvisioningError as e:
            print(f"[resolve-roles] Error: {type(e).__name__}: {e}", file=sys.stderr)
            sys.exit(1)
        for role in sorted(roles):
            print(role)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
