"""
TokenRecord model: one row per issued activation/reset/refresh token.
Fields:
- id / token_id (primary key) - the `jti` embedded in the signed token
- kind: activation | reset | refresh
- subject_id (String(36)) - FK to accounts.id
- issued_at, expires_at
- used (bool), used_at - set once on consumption or revocation
Access tokens are never stored here.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import relationship, synonym

from models.base_model import BaseModel, Base


class TokenRecord(BaseModel, Base):
    __tablename__ = "token_records"

    token_id = synonym("id")
    kind = Column(String(16), nullable=False)
    subject_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    issued_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime, nullable=True)

    subject = relationship("Account", back_populates="tokens")

    __table_args__ = (
        Index("ix_token_records_subject_kind_used", "subject_id", "kind", "used"),
    )

    def __repr__(self):
        return f"<TokenRecord {self.kind} token={self.id} used={self.used}>"
