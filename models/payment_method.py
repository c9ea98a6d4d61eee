from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, TIMESTAMP, Index, func, text
from db.init import Base

class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users_profile.id"), nullable=False, index=True)
    stripe_payment_method_id = Column(String(255), nullable=False)  # pm_...
    stripe_customer_id = Column(String(255), nullable=False)  # cus_...
    type = Column(String(20), nullable=False)  # card / ach
    last4 = Column(String(4))
    card_brand = Column(String(50))  # visa, mastercard, etc.
    bank_name = Column(String(100))  # ACH only
    exp_month = Column(Integer)
    exp_year = Column(Integer)
    is_default = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default="active")  # active / removed
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # One default per user among active rows
        Index(
            "uq_payment_methods_user_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default AND status = 'active'"),
            sqlite_where=text("is_default = 1 AND status = 'active'"),
        ),
    )
