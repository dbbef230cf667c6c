import os
import tempfile

_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret
os.environ["ENV"] = "test"

import subprocess
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

_sqlite_dir = tempfile.mkdtemp(prefix="orilla-test-")
TEST_DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_sqlite_dir}/orilla_test.db")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from orilla import database
from orilla.core.authorization import Actor, SystemRole
from orilla.models import (
    Account,
    Organisation,
    Project,
    ProjectMember,
    TimeEntry,
    TimeSheet,
    TimeSheetEntry,
    User,
)


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


def _clear_tables() -> None:
    with database.engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            names = [t.name for t in database.Base.metadata.sorted_tables]
            quoted = ", ".join(f'"{name}"' for name in names)
            conn.execute(text(f"TRUNCATE TABLE {quoted} RESTART IDENTITY CASCADE"))
            return
        for table in reversed(database.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    _ensure_database_exists(TEST_DATABASE_URL)

    env = os.environ.copy()
    env["DATABASE_URL"] = TEST_DATABASE_URL

    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        check=True,
        cwd=Path(__file__).resolve().parents[2],
        env=env,
    )

    database.configure_database()


@pytest.fixture(scope="function", autouse=True)
def _truncate_tables_between_tests():
    _clear_tables()
    yield
    _clear_tables()


class Factory:
    """Persists fixture rows in their own committed transactions."""

    def _save(self, row):
        session = database.SessionLocal()
        try:
            session.add(row)
            session.commit()
            session.refresh(row)
            return row
        finally:
            session.close()

    def user(self, role: str = "user", handle: str = None) -> User:
        uid = str(uuid4())
        handle = handle or f"user-{uid[:8]}"
        return self._save(User(id=uid, handle=handle, email=f"{handle}@example.com", role=role))

    def actor(self, user: User) -> Actor:
        return Actor(id=user.id, system_role=SystemRole(user.role))

    def organisation(self, total_budget_hours="100") -> Organisation:
        return self._save(
            Organisation(
                id=str(uuid4()),
                name="Acme",
                contact_name="Robin",
                contact_email="robin@acme.test",
                total_budget_hours=Decimal(total_budget_hours),
            )
        )

    def account(self, organisation: Organisation) -> Account:
        return self._save(
            Account(
                id=str(uuid4()),
                organisation_id=organisation.id,
                name="Finance",
                email="finance@acme.test",
                role="finance",
                access_code=str(uuid4()),
            )
        )

    def project(self, organisation: Organisation = None, budget_hours="40", name="Website") -> Project:
        return self._save(
            Project(
                id=str(uuid4()),
                organisation_id=None if organisation is None else organisation.id,
                name=name,
                description="",
                category="budget",
                budget_hours=None if budget_hours is None else Decimal(budget_hours),
            )
        )

    def member(self, project: Project, user: User, role: str) -> ProjectMember:
        return self._save(
            ProjectMember(id=str(uuid4()), project_id=project.id, user_id=user.id, role=role)
        )

    def entry(
        self,
        *,
        hours="2",
        project: Project = None,
        organisation: Organisation = None,
        created_by: User = None,
        status: str = "pending",
        status_changed_by: User = None,
        billed: bool = False,
        title: str = "Work",
    ) -> TimeEntry:
        return self._save(
            TimeEntry(
                id=str(uuid4()),
                organisation_id=None if organisation is None else organisation.id,
                project_id=None if project is None else project.id,
                title=title,
                description="",
                date=date(2026, 9, 1),
                hours=Decimal(hours),
                billed=billed,
                status=status,
                status_changed_by=None if status_changed_by is None else status_changed_by.id,
                created_by=None if created_by is None else created_by.id,
            )
        )

    def sheet(
        self,
        *,
        project: Project = None,
        organisation: Organisation = None,
        status: str = "draft",
        entries=(),
        created_by: User = None,
        title: str = "September",
    ) -> TimeSheet:
        sheet = self._save(
            TimeSheet(
                id=str(uuid4()),
                title=title,
                description="",
                status=status,
                organisation_id=None if organisation is None else organisation.id,
                project_id=None if project is None else project.id,
                created_by=None if created_by is None else created_by.id,
            )
        )
        for entry in entries:
            self._save(TimeSheetEntry(time_sheet_id=sheet.id, time_entry_id=entry.id))
        return sheet


@pytest.fixture
def factory() -> Factory:
    return Factory()


@pytest.fixture
def reload():
    def _reload(model, row_id):
        session = database.SessionLocal()
        try:
            return session.get(model, row_id)
        finally:
            session.close()

    return _reload
