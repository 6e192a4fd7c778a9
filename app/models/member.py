from __future__ import annotations
from pydantic import BaseModel


class Member(BaseModel):
    user_id: str
    name: str = ""           # joined from the user record
    email: str = ""
    role: str
    department_slug: str


class MemberWithStatus(Member):
    is_kpi_entry_filled_for_current_month: bool = False


class TextFilter(BaseModel):
    field: str    # name | email
    pattern: str  # case-insensitive substring


class ExactFilter(BaseModel):
    field: str    # department_slug | role
    value: str


class MemberQuery(BaseModel):
    """(any text filter matches) AND (all exact filters match).

    An empty filter list on either side matches everything.
    """

    text_filters: list[TextFilter] = []
    exact_filters: list[ExactFilter] = []

    def matches(self, member: Member) -> bool:
        if self.text_filters and not any(
            f.pattern.lower() in str(getattr(member, f.field, "")).lower()
            for f in self.text_filters
        ):
            return False
        return all(getattr(member, f.field, None) == f.value for f in self.exact_filters)
