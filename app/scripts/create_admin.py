import asyncio
import logging
import os

from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from app.core.config import settings
from app.core.logging import setup_logging
from app.core.security import hash_password
from app.models.user import User

log = logging.getLogger(__name__)

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@propertyhub.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")


async def main():
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    Session = async_sessionmaker(engine, expire_on_commit=False)

    email = User.normalize_email(ADMIN_EMAIL)
    async with Session() as db:
        existing = (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if existing:
            log.info("admin user already exists: %s", email)
        else:
            db.add(User(
                email=email,
                password_hash=hash_password(ADMIN_PASSWORD),
                role="admin",
                first_name="Admin",
                last_name="User",
                is_active=True,
                is_email_verified=True,
                created_by="script",
                updated_by="script",
            ))
            await db.commit()
            log.info("admin user created: %s", email)

    await engine.dispose()

if __name__ == "__main__":
    setup_logging(settings.log_level, settings.log_format)
    asyncio.run(main())
