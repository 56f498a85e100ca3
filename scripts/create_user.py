#!/usr/bin/env python3
"""Dev script to create a user and print a bearer token for them.

Usage:
    python scripts/create_user.py <email> <name> [--role admin|manager|member]
    python scripts/create_user.py --token <email>
"""

import asyncio
import logging
import sys

from taskhub.core.db_client import DatabaseClient
from taskhub.core.schema import init_schema
from taskhub.core.security import TokenVerifier
from taskhub.domain.user import UserCreate, UserRole
from taskhub.services.user_service import UserService


logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


async def create_user(email: str, name: str, role: UserRole) -> None:
    """Create the user (or reuse an existing one) and print a token."""
    db = DatabaseClient()
    await db.connect()
    try:
        await init_schema(db)
        users = UserService(db)
        user = await users.get_by_email(email=email)
        if user is None:
            user = await users.create_user(data=UserCreate(email=email, name=name, role=role))
            logger.info("Created %s (%s) with role %s", user.name, user.email, user.role)
        else:
            logger.info("User %s already exists (id %s)", user.email, user.id)

        verifier = TokenVerifier(users.user_exists)
        logger.info("Token: %s", verifier.issue_token(user.id))
    finally:
        await db.close()


async def print_token(email: str) -> None:
    db = DatabaseClient()
    await db.connect()
    try:
        users = UserService(db)
        user = await users.get_by_email(email=email)
        if user is None:
            logger.error("No user with email %s", email)
            sys.exit(1)
        logger.info("Token: %s", TokenVerifier(users.user_exists).issue_token(user.id))
    finally:
        await db.close()


def print_usage() -> None:
    """Print usage information."""
    logger.info(__doc__)


async def main() -> None:
    """Main entry point."""
    args = sys.argv[1:]

    if not args or "--help" in args or "-h" in args:
        print_usage()
        return

    if args[0] == "--token":
        if len(args) < 2:
            print_usage()
            sys.exit(1)
        await print_token(args[1])
        return

    if len(args) < 2:
        print_usage()
        sys.exit(1)

    email, name = args[0], args[1]
    role = UserRole.MEMBER
    if "--role" in args:
        role_index = args.index("--role")
        if role_index + 1 >= len(args) or args[role_index + 1] not in list(UserRole):
            print_usage()
            sys.exit(1)
        role = UserRole(args[role_index + 1])

    await create_user(email, name, role)


if __name__ == "__main__":
    asyncio.run(main())
