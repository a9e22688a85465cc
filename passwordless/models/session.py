from sqlalchemy import Column, String, DateTime, ForeignKey
from passwordless.core.database import Base

class UserSession(Base):
    __tablename__ = "session"

    # sha256 hex of the raw session token
    id = Column(String(64), primary_key=True)
    user_id = Column(String(36), ForeignKey("user.id"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
