# db/init.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from dotenv import load_dotenv
import os

load_dotenv()

# ---- Database engine & Session ----
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set in environment (.env)")

engine = create_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ---- Base for ORM models ----
Base = declarative_base()


# ---- DB session dependency ----
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def import_models():
    """Import every model module so its table is registered on Base."""
    from models import (  # noqa: F401
        user,
        tenant,
        payment_method,
        autopay_enrollment,
        payment,
    )


# ---- Initialization ----
def init_db(bind=None):
    """
    Imports all model modules to register tables and creates them.
    Tables are owned by the surrounding CRUD layer in production; this
    only creates what is missing.
    """
    import_models()
    Base.metadata.create_all(bind=bind or engine)
