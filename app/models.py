import uuid

from sqlalchemy import Column, String, Float, Integer, DateTime, JSON
from app.database import Base


def _uuid():
    return str(uuid.uuid4())


class RowMixin:
    def to_dict(self):
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class Payment(RowMixin, Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, index=True, nullable=False)
    amount = Column(Float)
    currency = Column(String)
    payment_method = Column(String)                # wave
    status = Column(String)                        # pending | completed | failed
    reference = Column(String, unique=True, index=True)
    session_id = Column(String, nullable=True)
    subscription_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), nullable=True)


class GamingSession(RowMixin, Base):
    __tablename__ = "gaming_sessions"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, index=True, nullable=False)
    platform = Column(String)
    start_time = Column(DateTime(timezone=True))
    end_time = Column(DateTime(timezone=True))
    duration_minutes = Column(Integer)
    status = Column(String)                        # pending | confirmed | ...
    players_count = Column(Integer)
    extras = Column(JSON, nullable=True)
    total_price = Column(Float)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), nullable=True)


class Subscription(RowMixin, Base):
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, index=True, nullable=False)
    type = Column(String)
    start_date = Column(DateTime(timezone=True))
    end_date = Column(DateTime(timezone=True))
    remaining_minutes = Column(Integer)
    status = Column(String)                        # pending | active | ...
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), nullable=True)
