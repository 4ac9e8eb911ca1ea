"""
Seed script for portal access data.

Creates the default branches and gives an existing user a role record plus a
permission template.

Usage:
    python -m scripts.seed_permissions --email manager@example.com --role user --template limited
    python -m scripts.seed_permissions --email owner@example.com --role admin
"""
import argparse
import asyncio
from sqlalchemy import select

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.permissions.models import Branch
from app.features.permissions.templates import TEMPLATES, apply_template
from app.features.users.models import User, UserRole
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_BRANCHES = [
    "Head Office",
    "North",
    "South",
]


async def seed_branches(session) -> int:
    result = await session.execute(select(Branch.name))
    existing = set(result.scalars().all())
    created = 0
    for name in DEFAULT_BRANCHES:
        if name in existing:
            continue
        session.add(Branch(name=name))
        created += 1
    await session.commit()
    log.info(f"Created {created} branches")
    return created


async def seed_user(session, email: str, role: str, template: str | None) -> None:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        log.error(f"No user with email {email}; sign in once through the portal first")
        return

    if user.role_assignment is None:
        user.role_assignment = UserRole(user_id=user.id, role=role)
    else:
        user.role_assignment.role = role
    await session.commit()
    log.info(f"User {email} now has role {role}")

    if template:
        written = await apply_template(session, user.id, template)
        await session.commit()
        log.info(f"Applied {template} template to {email} ({written} rows)")


async def main(email: str | None, role: str, template: str | None) -> None:
    await init_db()
    async with AsyncSessionLocal() as session:
        await seed_branches(session)
        if email:
            await seed_user(session, email, role, template)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed branches and user permissions")
    parser.add_argument("--email", help="Existing user to configure")
    parser.add_argument("--role", default="user", help="Portal role to assign (default: user)")
    parser.add_argument("--template", choices=sorted(TEMPLATES), help="Permission template to apply")
    args = parser.parse_args()
    asyncio.run(main(args.email, args.role, args.template))
