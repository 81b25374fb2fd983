from models.base_model import Base, BaseModel, SoftDeleteMixin
from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship


class User(SoftDeleteMixin, BaseModel, Base):
    __tablename__ = "users"
    name = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    # null for principals that only ever signed in through OAuth
    password_hash = Column(String(255), nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)

    accounts = relationship(
        "Account",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self):
        return f"<User id={self.id} name={self.name}>"
