"""Department report generation: per-role rankings, locking and re-runs."""
from __future__ import annotations

from datetime import timedelta

import pytest

from app.models.kpi_entry import EntryFilter, EntryStatus, EntryValueIn, KpiEntryCreate, SystemEntryCreate, SystemValue
from app.models.kpi_template import Frequency, KpiTemplate, KpiType, TemplateItem
from app.services import db, kpi_entry_service, storage
from app.services.errors import BadRequest, MemberNotFound, MissingBypassScore, ReportAlreadyGenerated, TemplateNotFound

pytestmark = pytest.mark.anyio


@pytest.fixture
def roster(add_member, add_template, daily_template):
    add_template(daily_template)
    add_template(KpiTemplate(
        id="tpl_score", name="Manager Score", role="developer", frequency=Frequency.monthly,
        items=[TemplateItem(name="Rating", kpi_type=KpiType.score)],
    ))
    for uid in ("dev1", "dev2", "dev3", "dev4"):
        add_member(uid)
    add_member("qa1", role="qa")
    add_member("ops1", department="operations")


async def _score(member_id: str, rating: float, now):
    return await kpi_entry_service.create_kpi_entry(
        KpiEntryCreate(kpi_template_id="tpl_score", created_for=member_id,
                       values=[EntryValueIn(name="Rating", value=rating)]),
        "mgr", now=now,
    )


class TestReport:
    async def test_roles_ranked_separately(self, roster, now):
        for uid, rating in (("dev1", 90), ("dev2", 90), ("dev3", 80), ("dev4", 70)):
            await _score(uid, rating, now)

        report = await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)

        assert report.template_name == "Manager Score"
        assert [r.role for r in report.role_reports] == ["developer", "qa"]
        developers = report.role_reports[0]
        assert [r.ranking for r in developers.rankings] == [1, 1, 3, 4]
        assert developers.statistics.completion_rate == 100
        assert developers.statistics.average_score == 82.5

        qa = report.role_reports[1]
        assert [r.has_entry for r in qa.rankings] == [False]
        assert qa.statistics.completion_rate == 0

    async def test_department_statistics_cover_all_roles(self, roster, now):
        await _score("dev1", 10, now)
        await _score("dev2", 6, now)
        await _score("dev3", 2, now)

        report = await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)
        stats = report.department_statistics
        assert stats.total_members == 5
        assert stats.members_with_entries == 3
        assert stats.members_without_entries == 2
        assert stats.completion_rate == 60
        assert stats.average_score == 6
        assert stats.highest_score == 10
        assert stats.lowest_score == 2
        assert stats.total_roles == 2

    async def test_reported_entries_are_locked(self, roster, now):
        e1 = await _score("dev1", 5, now)
        e2 = await _score("dev2", 4, now)

        report = await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)
        assert report.entries_selected == 2
        assert report.entries_updated == 2

        for entry_id in (e1.id, e2.id):
            stored = await db.get_entry(entry_id)
            assert stored.status is EntryStatus.generated

    async def test_second_run_sees_no_entries(self, roster, now):
        """Not idempotent: locked entries are excluded from the next run."""
        for uid in ("dev1", "dev2", "dev3"):
            await _score(uid, 7, now)

        first = await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)
        second = await kpi_entry_service.generate_report_by_department(
            "engineering", "tpl_score", "admin", now=now + timedelta(minutes=1),
        )

        reported = {r.member_id for report in first.role_reports for r in report.rankings if r.has_entry}
        assert reported == {"dev1", "dev2", "dev3"}
        for role_report in second.role_reports:
            for row in role_report.rankings:
                assert row.has_entry is False
                assert row.total_score == 0
        assert second.entries_updated == 0
        assert second.department_statistics.completion_rate == 0

    async def test_other_departments_untouched(self, roster, now):
        await _score("dev1", 3, now)
        ops_entry = await kpi_entry_service.create_kpi_entry(
            KpiEntryCreate(kpi_template_id="tpl_score", created_for="ops1",
                           values=[EntryValueIn(name="Rating", value=9)]),
            "mgr", now=now,
        )
        report = await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)

        members = {r.member_id for rr in report.role_reports for r in rr.rankings}
        assert "ops1" not in members
        assert (await db.get_entry(ops_entry.id)).status is EntryStatus.initiated

    async def test_latest_entry_per_member_is_ranked(self, roster, now):
        await _score("dev1", 2, now - timedelta(days=40))
        await _score("dev1", 8, now)
        report = await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)
        dev1 = next(r for r in report.role_reports[0].rankings if r.member_id == "dev1")
        assert dev1.total_score == 8

    async def test_older_unreported_entries_are_locked_too(self, roster, now):
        stale = await _score("dev1", 2, now - timedelta(days=40))
        current = await _score("dev1", 8, now)

        first = await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)
        assert first.entries_selected == 2
        assert first.entries_updated == 2
        for entry_id in (stale.id, current.id):
            assert (await db.get_entry(entry_id)).status is EntryStatus.generated

        second = await kpi_entry_service.generate_report_by_department(
            "engineering", "tpl_score", "admin", now=now + timedelta(minutes=1),
        )
        dev1 = next(r for r in second.role_reports[0].rankings if r.member_id == "dev1")
        assert dev1.has_entry is False
        assert dev1.total_score == 0

    async def test_partial_lock_is_reported_as_count(self, roster, now, monkeypatch):
        await _score("dev1", 5, now)
        await _score("dev2", 4, now)

        async def _lock_one(flt, data):
            return 1
        monkeypatch.setattr(db, "update_entries", _lock_one)

        report = await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)
        assert report.entries_selected == 2
        assert report.entries_updated == 1

    async def test_generation_is_audited(self, roster, now):
        await _score("dev1", 5, now)
        await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)
        last = storage.AUDIT_LOGS[-1]
        assert (last.action, last.user_id) == ("generate_report", "admin")
        assert last.changes[0].new_value["entries_updated"] == 1

    async def test_audit_failure_does_not_abort(self, roster, now, monkeypatch):
        async def _broken(record):
            raise RuntimeError("audit store down")
        monkeypatch.setattr(db, "create_audit_log", _broken)

        await _score("dev1", 5, now)
        report = await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)
        assert report.entries_updated == 1

    async def test_unknown_template(self, roster, now):
        with pytest.raises(TemplateNotFound):
            await kpi_entry_service.generate_report_by_department("engineering", "nope", "admin", now=now)

    @pytest.mark.parametrize("department,template_id", [("", "tpl_score"), ("engineering", "")])
    async def test_required_parameters(self, roster, department, template_id):
        with pytest.raises(BadRequest):
            await kpi_entry_service.generate_report_by_department(department, template_id, "admin")

    async def test_empty_department(self, roster, now):
        report = await kpi_entry_service.generate_report_by_department("marketing", "tpl_score", "admin", now=now)
        assert report.role_reports == []
        assert report.department_statistics.completion_rate == 0
        assert report.entries_updated == 0


class TestCreateEntry:
    async def test_role_mismatch(self, roster, now):
        with pytest.raises(BadRequest, match="Template is not for qa"):
            await _score("qa1", 5, now)

    async def test_unknown_member(self, roster, now):
        with pytest.raises(MemberNotFound):
            await _score("ghost", 5, now)

    async def test_entry_and_audit_written(self, roster, now):
        entry = await _score("dev1", 6.5, now)
        assert entry.created_by == "mgr"
        assert entry.total_score == 6.5
        assert entry.period_key == "monthly:2025-02-01"
        assert storage.AUDIT_LOGS[-1].action == "create"


class TestRoleStatistics:
    async def test_counts_entries_in_any_status(self, roster, now):
        await _score("dev1", 9, now)
        await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)
        await _score("dev2", 4, now)

        stats = await kpi_entry_service.get_statistics_by_department_and_role(
            "tpl_score", "engineering", "developer", page=1, limit=10,
        )
        assert [(r.member_id, r.ranking) for r in stats.rankings[:2]] == [("dev1", 1), ("dev2", 2)]
        assert stats.rankings[0].status == "generated"
        assert stats.statistics.completion_rate == 50
        assert stats.pagination.total == 4

    async def test_paged(self, roster):
        stats = await kpi_entry_service.get_statistics_by_department_and_role(
            "tpl_score", "engineering", "developer", page=2, limit=3,
        )
        assert len(stats.rankings) == 1
        assert stats.pagination.total_pages == 2
        assert stats.pagination.has_previous_page is True
        assert stats.pagination.has_next_page is False

    async def test_requires_all_parameters(self, roster):
        with pytest.raises(BadRequest):
            await kpi_entry_service.get_statistics_by_department_and_role("tpl_score", "engineering", "")


class TestSystemEntries:
    async def test_values_are_bypassed(self, roster, now):
        entry = await kpi_entry_service.create_system_generated_entry(
            "tpl_score", "dev1", [SystemValue(name="Rating", value=88, source="ci", score=4)], now=now,
        )
        assert entry.created_by == "system"
        assert entry.values[0].is_by_passed is True
        assert entry.values[0].comments == "System generated from ci"
        assert entry.total_score == 4

    async def test_missing_score_rejected(self, roster, now):
        with pytest.raises(MissingBypassScore):
            await kpi_entry_service.create_system_generated_entry(
                "tpl_score", "dev1", [SystemValue(name="Rating", value=88, source="ci")], now=now,
            )

    async def test_unknown_member(self, roster, now):
        with pytest.raises(MemberNotFound):
            await kpi_entry_service.create_system_generated_entry(
                "tpl_score", "ghost", [SystemValue(name="Rating", value=88, source="ci", score=4)], now=now,
            )
        assert storage.ENTRIES == {}

    async def test_refused_after_report(self, roster, now):
        await _score("dev1", 5, now)
        await kpi_entry_service.generate_report_by_department("engineering", "tpl_score", "admin", now=now)

        with pytest.raises(ReportAlreadyGenerated):
            await kpi_entry_service.create_system_generated_entry(
                "tpl_score", "dev1", [SystemValue(name="Rating", value=88, source="ci", score=4)],
                now=now + timedelta(days=40),
            )
        assert await db.count_entries(EntryFilter(created_by="system")) == 0

    async def test_bulk(self, roster, now):
        created = await kpi_entry_service.bulk_create_system_entries([
            SystemEntryCreate(kpi_template_id="tpl_score", user_id=uid,
                              system_values=[SystemValue(name="Rating", value=1, source="hr", score=1)])
            for uid in ("dev1", "dev2")
        ], now=now)
        assert [e.created_for for e in created] == ["dev1", "dev2"]
        assert await db.count_entries(EntryFilter(created_by="system")) == 2
