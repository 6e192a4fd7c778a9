"""In-memory store used when Supabase is not configured. Seeded with a demo department."""
from __future__ import annotations

from app.models.audit import AuditRecord
from app.models.kpi_entry import KpiEntry
from app.models.kpi_template import Frequency, KpiTemplate, KpiType, ScoringRule, TemplateItem
from app.models.member import Member

TEMPLATES: dict[str, KpiTemplate] = {}
MEMBERS: dict[str, Member] = {}     # user_id -> member
ENTRIES: dict[str, KpiEntry] = {}
AUDIT_LOGS: list[AuditRecord] = []

# ── Seed data ─────────────────────────────────────────────────────────────────

_SEED_TEMPLATES = [
    KpiTemplate(
        id="tpl_dev_monthly", name="Developer Monthly Review", role="developer",
        frequency=Frequency.monthly,
        items=[
            TemplateItem(
                name="Sprint Completion", kpi_type=KpiType.percentage, max_marks=5, kpi_unit="%",
                scoring_rules=[
                    ScoringRule(value=90, score=5),
                    ScoringRule(value=75, score=3),
                    ScoringRule(value=50, score=1),
                ],
            ),
            TemplateItem(
                name="Bugs Fixed", kpi_type=KpiType.quantitative, max_marks=5,
                scoring_rules=[
                    ScoringRule(min=0, max=4, score=1),
                    ScoringRule(min=5, max=9, score=3),
                    ScoringRule(min=10, max=1000, score=5),
                ],
            ),
            TemplateItem(
                name="Documentation Updated", kpi_type=KpiType.binary, max_marks=2,
                scoring_rules=[ScoringRule(value=True, score=2), ScoringRule(value=False, score=0)],
            ),
            TemplateItem(
                name="Peer Review", kpi_type=KpiType.qualitative, max_marks=3,
                scoring_rules=[
                    ScoringRule(value="excellent", score=3),
                    ScoringRule(value="good", score=2),
                    ScoringRule(value="fair", score=1),
                ],
            ),
            TemplateItem(name="Manager Rating", kpi_type=KpiType.score, max_marks=10),
            TemplateItem(
                name="Build Health", kpi_type=KpiType.percentage, max_marks=5, is_dynamic=True,
                description="Pushed by CI at month end",
                scoring_rules=[ScoringRule(value=95, score=5), ScoringRule(value=80, score=2)],
            ),
        ],
    ),
    KpiTemplate(
        id="tpl_qa_weekly", name="QA Weekly Check-in", role="qa",
        frequency=Frequency.weekly,
        items=[
            TemplateItem(
                name="Test Cases Executed", kpi_type=KpiType.quantitative, max_marks=5,
                scoring_rules=[ScoringRule(min=0, max=49, score=2), ScoringRule(min=50, max=10000, score=5)],
            ),
            TemplateItem(
                name="Regression Suite Green", kpi_type=KpiType.binary, max_marks=5,
                scoring_rules=[ScoringRule(value=True, score=5)],
            ),
        ],
    ),
]

_SEED_MEMBERS = [
    # (user_id, name, email, role, department)
    ("u_eng_01", "A. Kowalski", "a.kowalski@example.com", "developer", "engineering"),
    ("u_eng_02", "B. Singh",    "b.singh@example.com",    "developer", "engineering"),
    ("u_eng_03", "C. Moreau",   "c.moreau@example.com",   "developer", "engineering"),
    ("u_eng_04", "D. Okafor",   "d.okafor@example.com",   "qa",        "engineering"),
    ("u_eng_05", "E. Tanaka",   "e.tanaka@example.com",   "qa",        "engineering"),
    ("u_ops_01", "F. Novak",    "f.novak@example.com",    "developer", "operations"),
]


def reset(seed: bool = True) -> None:
    """Clear every collection, optionally reloading the demo data."""
    TEMPLATES.clear()
    MEMBERS.clear()
    ENTRIES.clear()
    AUDIT_LOGS.clear()
    if not seed:
        return
    for template in _SEED_TEMPLATES:
        TEMPLATES[template.id] = template.model_copy(deep=True)
    for user_id, name, email, role, department in _SEED_MEMBERS:
        MEMBERS[user_id] = Member(
            user_id=user_id, name=name, email=email, role=role, department_slug=department,
        )


reset()
