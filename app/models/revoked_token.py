"""RevokedToken model: jti blocklist for session revocation."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base, utcnow


class RevokedToken(Base):
    """Stores revoked session IDs (jti claims).

    Access and refresh tokens minted together share one jti, so a single row
    revokes both. ``expires_at`` mirrors the token's original exp so old rows
    can be pruned once the token would have expired anyway.
    """

    __tablename__ = "revoked_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    jti: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires_in: Mapped[int] = mapped_column(BigInteger, nullable=False)  # ms left at revocation
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    revoked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<RevokedToken(jti={self.jti}, user_id={self.user_id})>"
