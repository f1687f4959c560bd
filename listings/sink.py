"""Keyed upsert of PropertyRecords into the properties table.

One ``INSERT ... ON CONFLICT (property_id) DO UPDATE`` per record. The update
set only touches columns this record actually supplied, and merges them so a
sparse source never blanks out what a richer one stored earlier:

- counts keep the stored value unless the new one is > 0
- nullable fields use ``COALESCE(new, stored)``
- a stored verified asking price only yields to another verified one
- fields filled by defaults (``estimated_fields``) are left alone
"""

import logging
from datetime import datetime

from sqlalchemy import and_, case, func, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import Property
from .transformations import PropertyRecord

logger = logging.getLogger(__name__)

COUNT_COLUMNS = ("beds", "baths", "sqft", "dom", "acres")
COALESCE_COLUMNS = (
    "address",
    "year_built",
    "property_type",
    "lat",
    "lng",
    "location",
    "sold_price",
    "avm_value",
    "listing_date",
    "sale_date",
    "mls_id",
    "source_url",
    "photos",
    "description",
)
ALWAYS_COLUMNS = ("status", "source")


def _insert_for(session: Session):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"upsert not supported on {dialect}")


def record_values(record: PropertyRecord) -> dict:
    """Column values for an INSERT of ``record``."""
    values = record.model_dump(exclude={"estimated_fields"})
    values["status"] = record.status.value
    values["asking_price_source"] = (
        record.asking_price_source.value if record.asking_price_source else None
    )
    values["photos"] = record.photos or None
    values["description"] = record.description or None
    return values


class PropertySink:
    """Writes normalized records; one commit per record."""

    def __init__(self, session: Session):
        self.session = session

    def build_upsert(self, record: PropertyRecord):
        values = record_values(record)
        table = Property.__table__
        stmt = _insert_for(self.session)(table).values(**values)
        excluded = stmt.excluded
        skip = set(record.estimated_fields)

        update = {}
        for column in COUNT_COLUMNS:
            if column in skip or not values.get(column):
                continue
            update[column] = case(
                (excluded[column] > 0, excluded[column]),
                else_=table.c[column],
            )
        for column in COALESCE_COLUMNS:
            if column in skip or values.get(column) is None:
                continue
            update[column] = func.coalesce(excluded[column], table.c[column])

        if values.get("asking_price") is not None:
            # Keep a stored verified price unless this record is verified too
            keep_stored = and_(table.c.verified.is_(True), excluded.verified.is_(False))
            update["asking_price"] = case(
                (keep_stored, table.c.asking_price),
                else_=excluded.asking_price,
            )
            update["asking_price_source"] = case(
                (keep_stored, table.c.asking_price_source),
                else_=excluded.asking_price_source,
            )
        if record.verified:
            update["verified"] = excluded.verified

        for column in ALWAYS_COLUMNS:
            if column in skip:
                continue
            update[column] = excluded[column]
        if "district" not in skip:
            update["district"] = excluded.district
        update["updated_at"] = datetime.utcnow()

        return stmt.on_conflict_do_update(index_elements=["property_id"], set_=update)

    def upsert(self, record: PropertyRecord) -> bool:
        """Insert or merge one record. Returns False (and rolls back) on DB errors."""
        try:
            self.session.execute(self.build_upsert(record))
            self.session.commit()
            return True
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.warning("Write failed for %s (%s): %s", record.property_id, record.address, e)
            return False

    def find(self, property_id: str) -> Property | None:
        return self.session.query(Property).filter(Property.property_id == property_id).first()

    def sold_without_price(self, limit: int | None = None) -> list[Property]:
        """Sold rows missing a price or size; candidates for enrichment."""
        query = (
            self.session.query(Property)
            .filter(Property.status == "sold")
            .filter(or_(Property.sold_price.is_(None), Property.sqft == 0, Property.year_built.is_(None)))
            .order_by(Property.id)
        )
        if limit:
            query = query.limit(limit)
        return query.all()
