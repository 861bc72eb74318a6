#!/usr/bin/env python3
"""
Development seed script.

Creates the schema, seeds the default subscription types and makes sure an
admin user exists so the admin API can be exercised locally.

Usage:
    python -m chatgate.scripts.seed_dev --admin-user-id admin --email admin@example.com
"""
import argparse

from chatgate.core.config import settings
from chatgate.core.database import create_all_tables
from chatgate.core.logging import configure_logging
from chatgate.features.registry.service import list_subscription_types, seed_subscription_types
from chatgate.features.users.service import get_or_create_user, update_user


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a local chatgate database")
    parser.add_argument("--admin-user-id", default="admin")
    parser.add_argument("--email", default=None)
    args = parser.parse_args()

    configure_logging(settings.ENV)
    create_all_tables()
    seed_subscription_types()

    user = get_or_create_user(args.admin_user_id, email=args.email, subscription_type_id=3)
    if not user.is_admin:
        user = update_user("seed_dev", user.user_id, {"is_admin": True})

    for tier in list_subscription_types(include_inactive=True):
        print(f"{tier.id:>3}  {tier.name:<12} max/day={tier.max_messages_per_day:<5} models={','.join(tier.available_model_ids)}")
    print(f"admin: {user.user_id} (X-User-Id header works when HEADER_AUTH_ENABLED=true)")


if __name__ == "__main__":
    main()
