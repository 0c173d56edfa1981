"""
Shared fixtures for the messaging test suite.

Each test gets a fresh in-memory SQLite database (aiosqlite) built from the
real models, plus a small seeded world of two clinics, their staff and a
patient account with no clinical record yet.
"""

import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DB_MANAGE", "migrations")
os.environ.setdefault("ENV", "dev")

from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clinic_messaging.core.base import Base
from clinic_messaging.core.db import _import_models
from clinic_messaging.core.security import Principal, Role
from clinic_messaging.modules.accounts.models import Account, Clinic
from clinic_messaging.modules.patients.models import Patient


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # let SQLAlchemy drive transactions so SAVEPOINTs behave
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    _import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


def principal_for(account: Account, clinic_id=...) -> Principal:
    return Principal(
        user_id=account.id,
        role=Role(account.role),
        clinic_id=account.clinic_id if clinic_id is ... else clinic_id,
        email=account.email,
        phone=account.phone,
    )


@pytest.fixture
def actor():
    return principal_for


@pytest_asyncio.fixture
async def world(session):
    clinic = Clinic(name="Clinic One", slug="clinic-1")
    other_clinic = Clinic(name="Clinic Two", slug="clinic-2")
    session.add_all([clinic, other_clinic])
    await session.flush()

    doctor = Account(role="DOCTOR", clinic_id=clinic.id, name="Dr. House", email="house@clinic1.test")
    other_doctor = Account(role="DOCTOR", clinic_id=clinic.id, name="Dr. Wilson", email="wilson@clinic1.test")
    admin = Account(role="ADMIN", clinic_id=clinic.id, name="Front Desk", email="desk@clinic1.test")
    foreign_admin = Account(role="ADMIN", clinic_id=other_clinic.id, name="Elsewhere", email="desk@clinic2.test")
    # patient accounts are not tied to a clinic and have no Patient row yet
    alice = Account(role="PATIENT", clinic_id=None, name="Alice", email="alice@x.com", phone="+15550001")
    bob = Account(role="PATIENT", clinic_id=None, name="Bob", email="bob@x.com")
    session.add_all([doctor, other_doctor, admin, foreign_admin, alice, bob])
    await session.flush()

    # bob already has a clinical record in clinic one
    bob_record = Patient(clinic_id=clinic.id, legal_name="Robert", primary_email="bob@x.com")
    session.add(bob_record)
    await session.commit()

    return SimpleNamespace(
        clinic=clinic,
        other_clinic=other_clinic,
        doctor=doctor,
        other_doctor=other_doctor,
        admin=admin,
        foreign_admin=foreign_admin,
        alice=alice,
        bob=bob,
        bob_record=bob_record,
    )
