"""Postcode store queries and writes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import func, insert, select, update
from sqlalchemy.orm import Session

from codepoint.common.time_utils import utc_now
from codepoint.store.models import Postcode

GridPair = tuple[int, int]


@dataclass(frozen=True)
class StagedPostcode:
    postcode: str
    eastings: int
    northings: int


@dataclass(frozen=True)
class PostcodePage:
    items: list[Postcode]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, -(-self.total // self.per_page))


def load_prefix_lookup(session: Session, prefix: str) -> dict[str, GridPair]:
    """Return ``{postcode: (eastings, northings)}`` for every stored postcode starting with ``prefix``."""
    stmt = select(Postcode.postcode, Postcode.eastings, Postcode.northings).where(
        Postcode.postcode.startswith(prefix, autoescape=True)
    )
    return {postcode: (eastings, northings) for postcode, eastings, northings in session.execute(stmt)}


def find_postcode(session: Session, postcode: str) -> Postcode | None:
    return session.scalars(select(Postcode).where(Postcode.postcode == postcode)).first()


def insert_postcodes(session: Session, rows: Sequence[StagedPostcode], *, now: datetime | None = None) -> int:
    if not rows:
        return 0
    stamp = now or utc_now()
    session.execute(
        insert(Postcode),
        [
            {
                "postcode": row.postcode,
                "eastings": row.eastings,
                "northings": row.northings,
                "created_at": stamp,
                "updated_at": stamp,
            }
            for row in rows
        ],
    )
    return len(rows)


def update_postcode(
    session: Session,
    postcode: str,
    eastings: int,
    northings: int,
    *,
    now: datetime | None = None,
) -> None:
    session.execute(
        update(Postcode)
        .where(Postcode.postcode == postcode)
        .values(eastings=eastings, northings=northings, updated_at=now or utc_now())
    )


def search_postcodes_by_text(session: Session, term: str, *, page: int, per_page: int) -> PostcodePage:
    condition = Postcode.postcode.icontains(term, autoescape=True)
    total = session.scalar(select(func.count()).select_from(Postcode).where(condition)) or 0
    items = list(
        session.scalars(
            select(Postcode)
            .where(condition)
            .order_by(Postcode.id)
            .limit(per_page)
            .offset((page - 1) * per_page)
        )
    )
    return PostcodePage(items=items, total=total, page=page, per_page=per_page)


def postcodes_in_bounding_box(
    session: Session,
    *,
    min_eastings: float,
    max_eastings: float,
    min_northings: float,
    max_northings: float,
) -> list[Postcode]:
    stmt = (
        select(Postcode)
        .where(Postcode.eastings >= min_eastings)
        .where(Postcode.eastings <= max_eastings)
        .where(Postcode.northings >= min_northings)
        .where(Postcode.northings <= max_northings)
        .order_by(Postcode.id)
    )
    return list(session.scalars(stmt))
