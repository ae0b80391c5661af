from sqlalchemy import Column, String, Boolean, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from db.session import Base
from db.models.user import _new_id


class CorporateProfile(Base):
    __tablename__ = "corporate_users"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    # Companies are owned by the company resource service; no FK here
    company_id = Column(String(36), index=True, nullable=False)
    employee_id = Column(String(100), nullable=True)
    cost_center = Column(String(100), nullable=True)
    approval_limit = Column(Numeric(10, 2), nullable=True)
    is_approver = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="corporate_profile")
