from datetime import datetime, timezone
from sqlalchemy import Column, Integer, DateTime
from app.db.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column in this schema stores UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(Base):
    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
