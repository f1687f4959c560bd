from sqlalchemy import inspect

from listings.database import clear_properties, init_db, make_engine, make_session_factory
from listings.models import Property


def test_init_db_creates_properties_table():
    engine = make_engine("sqlite://")
    init_db(engine)
    columns = {c["name"] for c in inspect(engine).get_columns("properties")}
    assert "estimated_fields" not in columns
    assert {"property_id", "asking_price", "sold_price", "avm_value", "district", "status"} <= columns


def test_session_factory_binds_engine(engine):
    SessionLocal = make_session_factory(engine)
    with SessionLocal() as session:
        session.add(Property(property_id="x", district="Bedford Central", status="active"))
        session.commit()

    with SessionLocal() as other:
        assert other.get_bind() is engine
        assert other.query(Property).count() == 1


def test_clear_properties(session):
    for i in range(3):
        session.add(Property(property_id=str(i), district="Bedford Central", status="sold"))
    session.commit()

    assert clear_properties(session) == 3
    assert session.query(Property).count() == 0
