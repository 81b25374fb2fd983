from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base

GITHUB = "github"


class Account(BaseModel, Base):
    """Links an external login (provider, provider_account_id) to a principal."""
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("provider", "provider_account_id", name="uq_accounts_provider_login"),
    )

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    provider = Column(String(32), nullable=False)
    provider_account_id = Column(String(255), nullable=False)

    user = relationship("User", back_populates="accounts")
