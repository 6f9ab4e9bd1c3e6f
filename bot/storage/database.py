"""SQLAlchemy models and session setup."""
from datetime import datetime
import logging

import pytz
from sqlalchemy import (
    create_engine, Column, Integer, BigInteger, String, DateTime, Text, Boolean, Float, ForeignKey, JSON, Table
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(pytz.UTC).replace(tzinfo=None)


_engine = None
_SessionLocal = None

group_members = Table(
    "group_members",
    Base.metadata,
    Column("group_id", BigInteger, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", BigInteger, ForeignKey("users.telegram_id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"

    telegram_id = Column(BigInteger, primary_key=True)
    first_name = Column(String(128), nullable=False, default="")
    last_name = Column(String(128), nullable=True)
    username = Column(String(64), nullable=True)
    language_code = Column(String(16), nullable=True)
    plan_type = Column(String(32), nullable=True)
    plan_started_at = Column(DateTime, nullable=True)
    plan_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Group(Base):
    __tablename__ = "groups"

    id = Column(BigInteger, primary_key=True)
    title = Column(String(255), nullable=True)
    type = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    members = relationship("User", secondary=group_members, order_by=User.first_name)


class Split(Base):
    __tablename__ = "splits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(BigInteger, ForeignKey("groups.id"), nullable=False, index=True)
    payer_id = Column(BigInteger, ForeignKey("users.telegram_id"), nullable=False, index=True)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False, default=0.0)
    mode = Column(String(16), nullable=False, default="equally")
    date = Column(DateTime, default=utcnow, nullable=False, index=True)
    is_manual_split = Column(Boolean, default=True, nullable=False)
    service_charge = Column(Float, nullable=True)
    service_tax = Column(Float, nullable=True)
    receipt_items = Column(JSON, nullable=True)

    participants = relationship(
        "SplitParticipant", cascade="all, delete-orphan", order_by="SplitParticipant.id"
    )


class SplitParticipant(Base):
    __tablename__ = "split_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    split_id = Column(Integer, ForeignKey("splits.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("users.telegram_id"), nullable=False)
    amount = Column(Float, nullable=True)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(BigInteger, ForeignKey("groups.id"), nullable=False, index=True)
    payer_id = Column(BigInteger, ForeignKey("users.telegram_id"), nullable=False, index=True)
    payee_id = Column(BigInteger, ForeignKey("users.telegram_id"), nullable=False, index=True)
    amount = Column(Float, nullable=False, default=0.0)
    date = Column(DateTime, default=utcnow, nullable=False, index=True)


class ReceiptScan(Base):
    __tablename__ = "receipt_scans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    group_id = Column(BigInteger, nullable=False, index=True)
    date = Column(DateTime, default=utcnow, nullable=False, index=True)
    success = Column(Boolean, nullable=False)
    subtotal = Column(Float, nullable=True)
    total = Column(Float, nullable=True)
    service_charge = Column(Float, nullable=True)
    service_tax = Column(Float, nullable=True)
    store_name = Column(String(255), nullable=True)
    receipt_date = Column(String(32), nullable=True)
    items = Column(JSON, nullable=True)


class UserEvent(Base):
    __tablename__ = "user_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, nullable=False)
    username = Column(String(64), nullable=True)
    chat_id = Column(BigInteger, nullable=False)
    event_type = Column(String(64), nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    extra = Column(Text, nullable=True)


def init_database(database_url: str) -> bool:
    global _engine, _SessionLocal
    if not database_url:
        return False
    try:
        kwargs = {"pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        _engine = create_engine(database_url, **kwargs)
        _SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False)
        return True
    except Exception as e:
        logger.error(f"Failed to init database: {e}")
        return False


def create_tables() -> None:
    if _engine is not None:
        Base.metadata.create_all(bind=_engine)


def drop_tables() -> None:
    if _engine is not None:
        Base.metadata.drop_all(bind=_engine)


def SessionLocal() -> Session:
    if _SessionLocal is None:
        raise RuntimeError("Database is not initialised; call init_database() first.")
    return _SessionLocal()
