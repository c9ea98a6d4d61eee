from sqlalchemy import Column, Integer, String, ForeignKey, TIMESTAMP, Numeric, func
from db.init import Base

class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users_profile.id"), nullable=False, index=True)
    property_id = Column(Integer, nullable=True)
    unit_number = Column(String(50))
    rent_amount = Column(Numeric(10, 2))
    status = Column(String(20), default="active")  # active / inactive
    created_at = Column(TIMESTAMP, server_default=func.now())
