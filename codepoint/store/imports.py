"""Import ledger: one row per fetched archive (content hash, size)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from codepoint.common.time_utils import utc_now
from codepoint.store.models import PostcodeImport


def find_import_by_hash(session: Session, content_hash: str) -> PostcodeImport | None:
    return session.scalars(
        select(PostcodeImport).where(PostcodeImport.content_hash == content_hash)
    ).first()


def record_import(session: Session, content_hash: str, size: int, *, now: datetime | None = None) -> PostcodeImport:
    # Re-fetching an identical archive only refreshes updated_at.
    stamp = now or utc_now()
    existing = session.scalars(
        select(PostcodeImport)
        .where(PostcodeImport.content_hash == content_hash)
        .where(PostcodeImport.size == size)
    ).first()
    if existing is not None:
        existing.updated_at = stamp
        return existing

    record = PostcodeImport(content_hash=content_hash, size=size, updated_at=stamp)
    session.add(record)
    return record
