"""Operator tasks for subscription credits.

``reset`` is the monthly rollover job: it zeroes every account's consumed
generation and image counters. ``set-tier`` moves one account to another plan
and applies that plan's quotas.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from storyforge import create_app, db  # noqa: E402
from storyforge.models import User  # noqa: E402
from storyforge.services.plans import PLAN_DEFINITIONS, apply_tier, reset_monthly_usage  # noqa: E402


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage StoryForge subscription credits.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("reset", help="Zero the monthly usage counters of every account.")

    tier_parser = subparsers.add_parser("set-tier", help="Move an account to a subscription tier.")
    tier_parser.add_argument("email", help="Email address of the account.")
    tier_parser.add_argument("tier", choices=sorted(PLAN_DEFINITIONS), help="Target tier.")
    return parser.parse_args(argv)


def reset_all_usage() -> int:
    users = User.query.all()
    for user in users:
        reset_monthly_usage(user)
    db.session.commit()
    return len(users)


def set_tier(email: str, tier: str) -> User:
    user = User.query.filter_by(email=email.strip().lower()).first()
    if user is None:
        raise SystemExit(f"No account found for {email}.")
    apply_tier(user, tier)
    db.session.commit()
    return user


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        if args.command == "reset":
            count = reset_all_usage()
            print(f"Reset monthly usage for {count} account(s).")
        elif args.command == "set-tier":
            user = set_tier(args.email, args.tier)
            print(
                f"{user.email} is now on the {user.subscription_tier} tier "
                f"({user.monthly_chapter_credits} chapter credits)."
            )


if __name__ == "__main__":
    main()
