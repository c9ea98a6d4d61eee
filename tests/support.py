import sys
import os
from datetime import datetime

# Add parent directory to path to import modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.init import init_db
from models.user import UserProfile
from models.tenant import Tenant
from models.payment_method import PaymentMethod
from models.autopay_enrollment import AutopayEnrollment


def make_session():
    """Fresh in-memory database with all tables, one session bound to it."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def add_user(db, email, role="tenant", stripe_customer_id=None, full_name="Test User"):
    user = UserProfile(email=email, full_name=full_name, role=role, stripe_customer_id=stripe_customer_id)
    db.add(user)
    db.commit()
    return user


def add_tenant(db, user, status="active", rent_amount="1500.00"):
    tenant = Tenant(user_id=user.id, unit_number="2B", rent_amount=rent_amount, status=status)
    db.add(tenant)
    db.commit()
    return tenant


def add_method(db, user, stripe_id, is_default=False, status="active", created_at=None):
    pm = PaymentMethod(
        user_id=user.id,
        stripe_payment_method_id=stripe_id,
        stripe_customer_id="cus_test",
        type="card",
        last4="4242",
        card_brand="visa",
        exp_month=12,
        exp_year=2030,
        is_default=is_default,
        status=status,
    )
    if created_at is not None:
        pm.created_at = created_at
    db.add(pm)
    db.commit()
    return pm


def add_enrollment(db, tenant, method, is_active=True, cancelled_at=None):
    enrollment = AutopayEnrollment(
        tenant_id=tenant.id,
        payment_method_id=method.id,
        is_active=is_active,
        discount_amount="25.00",
        enrolled_at=datetime(2026, 9, 1, 6, 0),
        cancelled_at=cancelled_at,
    )
    db.add(enrollment)
    db.commit()
    return enrollment


def defaults_for(db, user_id):
    """Ids of the user's active default methods."""
    return [
        pm.id
        for pm in db.query(PaymentMethod).filter(
            PaymentMethod.user_id == user_id,
            PaymentMethod.status == "active",
            PaymentMethod.is_default.is_(True),
        )
    ]
