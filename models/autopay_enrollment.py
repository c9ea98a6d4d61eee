from sqlalchemy import Column, Integer, Boolean, ForeignKey, TIMESTAMP, Numeric, func
from db.init import Base

DEFAULT_AUTOPAY_DISCOUNT = "25.00"

class AutopayEnrollment(Base):
    __tablename__ = "autopay_enrollments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, unique=True)
    payment_method_id = Column(Integer, ForeignKey("payment_methods.id"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=DEFAULT_AUTOPAY_DISCOUNT)
    enrolled_at = Column(TIMESTAMP(timezone=True))
    cancelled_at = Column(TIMESTAMP(timezone=True), nullable=True)  # NULL while active
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    @property
    def is_enrolled(self):
        return bool(self.is_active) and self.cancelled_at is None
