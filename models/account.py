from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship


class Account(BaseModel, Base):
    __tablename__ = "accounts"
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)

    tokens = relationship(
        "TokenRecord",
        back_populates="subject",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Account username={self.username} active={self.is_active}>"
