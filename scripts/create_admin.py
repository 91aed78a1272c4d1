#!/usr/bin/env python3
"""
Script to grant the admin role to an identity.

The user is created if the identity has never signed in.

Usage:
    python scripts/create_admin.py <open_id> [--email EMAIL] [--name NAME]
"""
import argparse
import sys
from pathlib import Path

# Add parent directory to the system path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import Database
from database.models import UserRole
from services.auth_service import AuthService
import config


def create_admin(open_id: str, email: str = None, name: str = None, database_url: str = None) -> int:
    """Promote (or create) the user for ``open_id`` to admin. Returns the user ID."""
    db_manager = Database(
        database_url=database_url or config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW
    )
    try:
        db_manager.create_tables()
        with db_manager.get_session() as db:
            user = AuthService.get_user_by_open_id(db, open_id)
            if user is None:
                user = AuthService.upsert_user(db, open_id=open_id, name=name, email=email)
            else:
                if email:
                    user.email = email
                if name:
                    user.name = name
            user = AuthService.set_role(db, user, UserRole.ADMIN)
            return user.id
    finally:
        db_manager.dispose()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Grant the admin role to an identity")
    parser.add_argument("open_id", help="External identity id (token 'sub')")
    parser.add_argument("--email", default=None, help="Email address for critical-finding alerts")
    parser.add_argument("--name", default=None, help="Display name")
    args = parser.parse_args(argv)

    print("Granting admin role...")
    print("=" * 50)
    try:
        user_id = create_admin(args.open_id, email=args.email, name=args.name)
    except Exception as e:
        print(f"\n✗ Error: {e}")
        sys.exit(1)

    print("\n✓ Admin role granted!")
    print(f"  User ID: {user_id}")
    print(f"  Identity: {args.open_id}")


if __name__ == "__main__":
    main()
