"""Shared fixtures: in-memory store, fixed clock, template/member builders."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.models.kpi_template import Frequency, KpiTemplate, KpiType, ScoringRule, TemplateItem
from app.models.member import Member
from app.services import db, storage


# Run anyio-marked tests on asyncio only
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def store(monkeypatch):
    """Force the in-memory store and start every test from an empty one."""
    monkeypatch.setattr(db, "get_supabase", lambda: None)
    storage.reset(seed=False)
    yield storage
    storage.reset()


@pytest.fixture
def now():
    # Wednesday
    return datetime(2025, 2, 19, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def daily_template():
    return KpiTemplate(
        id="tpl_daily", name="Daily Standup", role="developer",
        frequency=Frequency.daily,
        items=[
            TemplateItem(
                name="Tickets Closed", kpi_type=KpiType.quantitative, max_marks=5,
                scoring_rules=[ScoringRule(min=0, max=2, score=1), ScoringRule(min=3, max=100, score=5)],
            ),
            TemplateItem(
                name="Blocked", kpi_type=KpiType.binary, max_marks=2,
                scoring_rules=[ScoringRule(value=False, score=2)],
            ),
            TemplateItem(name="Uptime", kpi_type=KpiType.percentage, max_marks=5, is_dynamic=True),
        ],
    )


@pytest.fixture
def add_member():
    def _add(user_id: str, role: str = "developer", department: str = "engineering", name: str = "") -> Member:
        member = Member(
            user_id=user_id,
            name=name or user_id.upper(),
            email=f"{user_id}@example.com",
            role=role,
            department_slug=department,
        )
        storage.MEMBERS[user_id] = member
        return member
    return _add


@pytest.fixture
def add_template():
    def _add(template: KpiTemplate) -> KpiTemplate:
        storage.TEMPLATES[template.id] = template
        return template
    return _add
