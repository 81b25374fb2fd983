"""
RefreshToken model: one row per live refresh token.
Fields:
- id (String(36)) primary key
- token (unique) - the signed refresh token value, also the lookup key
- user_id (String(36)) - FK to users.id
- expires_at, created_at
"""
from sqlalchemy import Column, String, ForeignKey, Text

from models.base_model import Base, UTCDateTime, _uuid_str, utc_now


class RefreshToken(Base):
    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    token = Column(Text, nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(UTCDateTime(), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utc_now)

    def __repr__(self):
        return f"<RefreshToken id={self.id} user_id={self.user_id}>"
