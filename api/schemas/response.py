# WORKFLOW: Pydantic response schemas for normalized trade statistics.
# Used by: Metric merger, breakout ranker, trade stats engine, API responses
# Schemas include:
# 1. MergedRecord - One denormalized record per (rollup_key, year)
# 2. ReconciliationEntry - Detail contributions vs final value for one bucket
# 3. SeriesMeta - Chart series descriptor per rollup key and metric
# 4. NormalizedReport - Non-breakout output (records, years, diagnostics)
# 5. BreakoutResult - Top-N plus Others for one ranking year
# 6. StackedBreakdownRow / YearComparisonRow - Per-year and year-over-year views
#
# Response flow: Engine output -> Pydantic model -> JSON Schema validation -> API response
# Every number is a finite float or None; nothing serializes to NaN.

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Metric(str, Enum):
    QUANTITY = "quantity"
    VALUE = "value"
    CIF = "cif"
    CHARGES = "charges"
    CALC_DUTIES = "calc_duties"
    DUTIABLE = "dutiable"
    LANDED = "landed"


class PeriodMode(str, Enum):
    ANNUAL = "annual"
    YTD = "ytd"


class LandedSource(str, Enum):
    PUBLISHED = "published"
    DERIVED = "derived"


class MergedRecord(BaseModel):
    rollup_key: str
    year: str
    quantity: Optional[float] = None
    value: Optional[float] = None
    cif: Optional[float] = None
    charges: Optional[float] = None
    calc_duties: Optional[float] = None
    dutiable: Optional[float] = None
    landed: Optional[float] = None
    landed_check: Optional[float] = None
    landed_source: Optional[LandedSource] = None
    landed_mismatch: bool = False
    unit_value: Optional[float] = None
    period_warning: Optional[str] = None


class DetailValue(BaseModel):
    key: str
    value: float


class ReconciliationEntry(BaseModel):
    rollup_key: str
    year: str
    metric: Metric
    total: float
    details: List[DetailValue] = Field(default_factory=list)
    final: Optional[float] = None
    diff: Optional[float] = None
    mismatch: bool = False


class SeriesMeta(BaseModel):
    key: str
    rollup_key: str
    metric: Metric
    label: str


class NormalizedReport(BaseModel):
    years: List[str] = Field(default_factory=list)
    records: List[MergedRecord] = Field(default_factory=list)
    series: List[SeriesMeta] = Field(default_factory=list)
    reconciliation: List[ReconciliationEntry] = Field(default_factory=list)
    tables: Dict[str, str] = Field(default_factory=dict, description="Metric -> located table name")
    strategies: Dict[str, str] = Field(default_factory=dict, description="Metric -> extraction stage used")


class BreakoutEntry(BaseModel):
    name: str
    value: float


class BreakoutResult(BaseModel):
    ranking_year: Optional[str] = None
    entries: List[BreakoutEntry] = Field(default_factory=list)
    others: float = Field(0.0, ge=0.0)
    total: float = 0.0


class StackedBreakdownRow(BaseModel):
    year: str
    entries: List[BreakoutEntry] = Field(default_factory=list)
    others: float = Field(0.0, ge=0.0)
    total: float = 0.0


class YearComparisonRow(BaseModel):
    name: str
    diffs: Dict[str, float] = Field(default_factory=dict)


class YearComparison(BaseModel):
    target_year: Optional[str] = None
    base_year: Optional[str] = None
    mode: str = "abs"
    rows: List[YearComparisonRow] = Field(default_factory=list)
