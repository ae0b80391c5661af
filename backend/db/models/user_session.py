from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from db.session import Base
from db.models.user import _new_id


class UserSession(Base):
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    # Keep token length within index byte limits for utf8mb4
    token = Column(String(512), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
