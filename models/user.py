from sqlalchemy import Column, Integer, String, TIMESTAMP, func
from db.init import Base

class UserProfile(Base):
    __tablename__ = "users_profile"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(150), unique=True, index=True, nullable=False)
    full_name = Column(String(150))
    role = Column(String(20), nullable=False, default="applicant")  # admin / tenant / applicant
    stripe_customer_id = Column(String(255), nullable=True)  # Reused for every attach
    created_at = Column(TIMESTAMP, server_default=func.now())
