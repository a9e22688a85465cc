from sqlalchemy import Column, String, DateTime, ForeignKey
from passwordless.core.database import Base
from passwordless.core.timezone import get_utc_now

class OTPCode(Base):
    __tablename__ = "otp_code"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("user.id"), nullable=False, index=True)
    # sha256 hex of the raw code, never the code itself. Unique so a code names one owner
    code_hash = Column(String(64), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, default=get_utc_now, nullable=False)
    expires_at = Column(DateTime, nullable=False)
