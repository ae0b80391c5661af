from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db.session import Base
from db.models.user import _new_id


class AgentProfile(Base):
    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    agent_code = Column(String(50), unique=True, index=True, nullable=False)
    department = Column(String(100), nullable=True)
    # BASIC | SUPERVISOR | MANAGER | ADMIN
    access_level = Column(String(20), default="BASIC", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="agent_profile")
