from db.session import Base, engine
from db.models.user import User  # noqa: F401
from db.models.agent_profile import AgentProfile  # noqa: F401
from db.models.corporate_profile import CorporateProfile  # noqa: F401
from db.models.user_session import UserSession  # noqa: F401
from db.models.otp_code import OtpCode  # noqa: F401
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

async def initialize_database(bind: Optional[AsyncEngine] = None):
    """Create the identity tables if they do not exist yet."""
    target = bind or engine
    try:
        async with target.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
