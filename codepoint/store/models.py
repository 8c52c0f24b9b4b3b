"""ORM models for the postcode store and the import ledger."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from codepoint.common.constants import POSTCODE_MAX_LENGTH
from codepoint.common.time_utils import utc_now


class Base(DeclarativeBase):
    pass


class Postcode(Base):
    __tablename__ = "postcode"
    __table_args__ = (Index("ix_postcode_eastings_northings", "eastings", "northings"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    postcode: Mapped[str] = mapped_column(String(POSTCODE_MAX_LENGTH), unique=True, index=True)
    eastings: Mapped[int] = mapped_column(Integer)
    northings: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    def __repr__(self) -> str:
        return f"Postcode({self.postcode!r}, eastings={self.eastings}, northings={self.northings})"


class PostcodeImport(Base):
    __tablename__ = "postcode_import"
    __table_args__ = (UniqueConstraint("content_hash", "size", name="uq_postcode_import_hash_size"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    content_hash: Mapped[str] = mapped_column(String(32), index=True)
    size: Mapped[int] = mapped_column(BigInteger)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
