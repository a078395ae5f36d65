"""Database fixtures for relagg tests (shared)."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from .models import Contract, Country, Partner, Profile, Promocode, partner_notes, regions

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def sample_rows():
    """Deterministic rows: partner A has everything, B has nothing, C is inactive."""
    profile = Profile(id=1, name="John Doe", avatar="avatar.jpg")
    country = Country(id=1, name="USA", code="US")
    partners = [
        Partner(id=1, name="Partner A", status="active", profile_id=1, country_id=1, region_code="EU",
                created_at=BASE_TIME),
        Partner(id=2, name="Partner B", status="active", created_at=BASE_TIME + timedelta(hours=1)),
        Partner(id=3, name="Partner C", status="inactive", created_at=BASE_TIME + timedelta(hours=2)),
    ]
    promocodes = [
        Promocode(id=1, partner_id=1, code="PROMO1", created_at=BASE_TIME),
        Promocode(id=2, partner_id=1, code="PROMO2", created_at=BASE_TIME),
        Promocode(id=3, partner_id=3, code="PROMO3", created_at=BASE_TIME),
    ]
    contract = Contract(id=1, partner_id=1, number="C-001")
    return [profile, country, *partners, *promocodes, contract]


TABLE_ROWS = [
    (regions, [{"code": "EU", "title": "Europe"}]),
    (partner_notes, [
        {"id": 1, "partner_id": 1, "body": "Signed"},
        {"id": 2, "partner_id": 1, "body": "Renewed"},
    ]),
]


def seed(session: Session) -> None:
    session.add_all(sample_rows())
    session.flush()
    for table, rows in TABLE_ROWS:
        session.execute(insert(table), rows)
    session.commit()


async def aseed(session: AsyncSession) -> None:
    session.add_all(sample_rows())
    await session.flush()
    for table, rows in TABLE_ROWS:
        await session.execute(insert(table), rows)
    await session.commit()


@pytest.fixture(scope="function")
def populated_db(db_session):
    seed(db_session)
    return db_session


@pytest.fixture(scope="function")
async def async_populated_db(async_db_session):
    await aseed(async_db_session)
    return async_db_session
