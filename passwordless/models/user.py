from sqlalchemy import Column, String, DateTime
from passwordless.core.database import Base
from passwordless.core.timezone import get_utc_now

class User(Base):
    __tablename__ = "user"

    id = Column(String(36), primary_key=True)
    email = Column(String(320), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
