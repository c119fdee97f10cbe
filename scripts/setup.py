#!/usr/bin/env python3
"""Setup script for the charter booking API."""

import asyncio
import logging
import sys
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config

from charter.core.database import async_session_factory, close_db
from charter.models.party import PartyRole
from charter.schemas.party import RegisterPartyRequest
from charter.services.party_service import PartyService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_PARTIES = [
    RegisterPartyRequest(role=PartyRole.ADMIN, email="ops@charter.example", first_name="Platform", last_name="Admin"),
    RegisterPartyRequest(role=PartyRole.OPERATOR, email="dispatch@skyline.example", company="Skyline Jets"),
    RegisterPartyRequest(role=PartyRole.OPERATOR, email="sales@northwind-air.example", company="Northwind Air"),
    RegisterPartyRequest(role=PartyRole.AGENT, email="desk@globetrek.example", company="GlobeTrek Travel"),
    RegisterPartyRequest(role=PartyRole.PASSENGER, email="ada@example.com", first_name="Ada", last_name="Lovelace"),
]


async def setup_database():
    """Bring the schema up to the latest migration."""
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    # env.py drives its own event loop
    await asyncio.to_thread(command.upgrade, alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data():
    """Register a handful of sample parties, skipping those already present."""
    logger.info("Creating sample parties...")

    async with async_session_factory() as db:
        party_service = PartyService(db)
        for request in SAMPLE_PARTIES:
            existing = await party_service.get_party_by_email(request.email)
            if existing:
                logger.info("Party exists", extra={"user_code": existing.user_code})
                continue

            party = await party_service.register_party(request)
            logger.info(
                "Registered sample party",
                extra={"user_code": party.user_code, "role": request.role.value}
            )


async def main():
    """Main setup function."""
    logger.info("Starting charter booking API setup...")

    try:
        await setup_database()
        await create_sample_data()
    finally:
        await close_db()

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn charter.main:app --reload")


if __name__ == "__main__":
    asyncio.run(main())
