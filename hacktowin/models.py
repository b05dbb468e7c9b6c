import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from hacktowin.database import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class UserRole(str, enum.Enum):
    PARTICIPANT = "participant"
    ORGANIZER = "organizer"
    JUDGE = "judge"


def _utcnow():
    return datetime.now(timezone.utc)


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True)          # Stripe PaymentIntent ID
    amount = Column(Integer, nullable=False)       # minor currency units
    currency = Column(String(3), nullable=False)
    status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)  # stored lowercase
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False)          # participant | organizer | judge
    registered_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
