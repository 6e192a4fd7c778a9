from __future__ import annotations
from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, model_validator

# Raw submitted value. bool is listed first so JSON true/false never collapses to 1/0.
KpiValue = Union[bool, int, float, str]


class Frequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class KpiType(str, Enum):
    quantitative = "quantitative"
    percentage = "percentage"
    binary = "binary"
    qualitative = "qualitative"
    score = "score"


class ScoringRule(BaseModel):
    """Either a range rule (min/max) or an exact-match rule (value)."""

    min: Optional[float] = None
    max: Optional[float] = None
    value: Optional[KpiValue] = None
    score: float

    @model_validator(mode="after")
    def _check_shape(self) -> "ScoringRule":
        if self.value is None and (self.min is None or self.max is None):
            raise ValueError("scoring rule needs either min and max, or value")
        return self

    @property
    def is_range(self) -> bool:
        return self.min is not None and self.max is not None


class TemplateItem(BaseModel):
    name: str
    description: Optional[str] = None
    max_marks: float = 0
    kpi_type: KpiType
    kpi_unit: Optional[str] = None
    is_dynamic: bool = False  # filled later by an automated source, submitter may omit it
    scoring_rules: list[ScoringRule] = []


class KpiTemplate(BaseModel):
    id: str
    name: str
    role: str          # member role this template scores
    frequency: Frequency
    items: list[TemplateItem] = []
