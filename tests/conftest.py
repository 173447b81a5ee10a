import os

# Keep the app module from touching a file database or a real provider
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AI_API_KEY"] = ""

from datetime import date, datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app import models  # noqa: E402,F401
from app.core.config import DEFAULT_CALENDAR_FILE  # noqa: E402
from app.core.utils import school_tz  # noqa: E402
from app.db.database import Base, get_db  # noqa: E402
from app.models.check import CheckItem, CheckModule, CheckRecord, SchoolClass  # noqa: E402
from app.services.calendar_service import load_calendar  # noqa: E402

# Wednesday of school week 7 (2026-04-13 .. 2026-04-17)
TODAY = date(2026, 4, 15)
NOW = datetime(2026, 4, 15, 10, 0, tzinfo=school_tz())


@pytest.fixture(scope="session")
def calendar():
    return load_calendar(DEFAULT_CALENDAR_FILE)


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def client(db_session, calendar):
    from app.api.deps import get_now, get_orchestrator, get_school_calendar, get_today
    from app.core.rate_limit import limiter
    from app.main import app
    from app.services.analysis_cache import AnalysisCache
    from app.services.analysis_service import AnalysisOrchestrator

    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_today] = lambda: TODAY
    app.dependency_overrides[get_now] = lambda: NOW
    app.dependency_overrides[get_school_calendar] = lambda: calendar
    app.dependency_overrides[get_orchestrator] = lambda: AnalysisOrchestrator(AnalysisCache(db_session))
    limiter.reset()

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seed data: three classes, three daily items, W-1..W-5
# ---------------------------------------------------------------------------

@pytest.fixture()
def school(db_session):
    classes = [
        SchoolClass(name="一年级1班", grade=1, section=1),
        SchoolClass(name="一年级2班", grade=1, section=2),
        SchoolClass(name="二年级1班", grade=2, section=1),
    ]
    daily = [
        CheckItem(code="D-1", title="Classroom tidy", module=CheckModule.DAILY.value, sort_order=1),
        CheckItem(code="D-2", title="Uniforms worn", module=CheckModule.DAILY.value, sort_order=2),
        CheckItem(code="D-3", title="On time", module=CheckModule.DAILY.value, sort_order=3),
    ]
    weekly = [
        CheckItem(code=f"W-{i}", title=f"Weekly item {i}", module=CheckModule.WEEKLY.value, sort_order=i)
        for i in range(1, 6)
    ]
    db_session.add_all(classes + daily + weekly)
    db_session.commit()
    return {
        "classes": classes,
        "daily": {item.code: item for item in daily},
        "weekly": {item.code: item for item in weekly},
    }


def add_record(db, school_class, item, day, passed=None, option_value=None, severity=None, **kwargs):
    record = CheckRecord(
        class_id=school_class.id,
        check_item_id=item.id,
        date=day,
        passed=passed,
        option_value=option_value,
        severity=severity,
        **kwargs,
    )
    db.add(record)
    db.commit()
    return record


@pytest.fixture()
def make_record(db_session):
    def _make(school_class, item, day, passed=None, option_value=None, severity=None, **kwargs):
        return add_record(db_session, school_class, item, day, passed, option_value, severity, **kwargs)
    return _make
