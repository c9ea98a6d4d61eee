from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Date, TIMESTAMP, Numeric, func
from db.init import Base

class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    property_id = Column(Integer, nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)  # Dollars, exact
    payment_type = Column(String(20), default="rent")  # rent / late_fee / other
    payment_method = Column(String(20))  # stripe_ach, stripe_card, check, cash, money_order
    status = Column(String(20), default="pending")  # pending / processing / completed / failed / refunded
    stripe_payment_intent_id = Column(String(255), unique=True, nullable=True)
    due_date = Column(Date, nullable=False)
    payment_date = Column(TIMESTAMP, nullable=True)
    is_autopay = Column(Boolean, default=False)
    notes = Column(String(500))
    created_at = Column(TIMESTAMP, server_default=func.now())
