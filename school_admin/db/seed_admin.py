"""
Seed script to create the first Admin user.

Run once after init_db with env set:
  ADMIN_EMAIL=admin@school.example
  ADMIN_PASSWORD=YourSecurePassword

Creates or updates:
- users: one user with role Admin
- roles: one Admin row (Admin bypasses permission checks; the row keeps role listings complete)
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.models import Role, User
from school_admin.auth.security import hash_password
from school_admin.core.config import settings
from school_admin.core.enums import UserRole
from school_admin.core.logging import configure_logging
from school_admin.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_FULL_NAME = "School Admin"


async def seed_admin(db: AsyncSession, email: Optional[str], password: Optional[str]) -> Optional[User]:
    if not email or not password:
        logger.warning("ADMIN_EMAIL / ADMIN_PASSWORD not set; skipping admin user.")
        return None
    email = email.strip().lower()

    role = (await db.execute(select(Role).where(Role.name == UserRole.ADMIN.value))).scalar_one_or_none()
    if role is None:
        role = Role(name=UserRole.ADMIN.value, permissions={})
        db.add(role)
        await db.flush()
        logger.info("Created Admin role row.")

    user = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    if user is None:
        user = User(
            full_name=DEFAULT_ADMIN_FULL_NAME,
            email=email,
            password_hash=hash_password(password),
            role=UserRole.ADMIN.value,
            role_id=role.id,
            status="ACTIVE",
        )
        db.add(user)
        logger.info("Created Admin user %s", email)
    else:
        user.role = UserRole.ADMIN.value
        user.role_id = role.id
        user.password_hash = hash_password(password)
        logger.info("Updated existing user %s to Admin", email)

    await db.commit()
    return user


async def main() -> None:
    configure_logging(settings.log_level)
    async with AsyncSessionLocal() as db:
        try:
            await seed_admin(db, settings.admin_email, settings.admin_password)
        except Exception:
            await db.rollback()
            logger.exception("Admin seed failed")
            raise


if __name__ == "__main__":
    asyncio.run(main())
