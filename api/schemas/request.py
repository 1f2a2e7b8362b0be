# WORKFLOW: Pydantic request schemas for API input validation.
# Used by: FastAPI trade report endpoints for request validation and documentation
# Schemas include:
# 1. TradeReportRequest - For /trade-report (normalized records or breakout)
# 2. StackedBreakdownRequest - For /trade-report/stacked
# 3. YearComparisonRequest - For /trade-report/compare
#
# Validation flow: HTTP request -> Pydantic validation -> Endpoint processing
# Malformed enum values are rejected (422); topN is clamped into the configured range.

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from api.schemas.response import Metric, PeriodMode
from core.config import settings


def _clamp_top_n(value: Optional[int]) -> Optional[int]:
    if value is None:
        return value
    return max(settings.top_n_min, min(settings.top_n_max, value))


class TradeReportRequest(BaseModel):
    """Request schema for the trade report endpoint."""
    payload: Dict[str, Any] = Field(..., description="Deserialized report payload with tables")
    metric: Metric = Field(Metric.CIF, description="Metric to reconcile or rank")
    period_mode: PeriodMode = Field(PeriodMode.ANNUAL, description="Annual or year-to-date tables")
    breakout: bool = Field(False, description="Return a per-country Top-N breakout")
    top_n: int = Field(default_factory=lambda: settings.default_top_n, description="Breakout size")
    breakout_year: str = Field("auto", pattern=r"^(auto|(19|20)\d{2})$", description="Ranking year or 'auto'")
    known_keys: List[str] = Field(default_factory=list, description="Commodity codes or country names")
    key_context: Literal["commodity", "country"] = Field("commodity", description="Row key context")

    @field_validator("top_n")
    @classmethod
    def clamp_top_n(cls, v):
        return _clamp_top_n(v)


class StackedBreakdownRequest(BaseModel):
    """Request schema for the stacked per-year breakdown."""
    payload: Dict[str, Any] = Field(..., description="Deserialized report payload with tables")
    metric: Metric = Field(Metric.CIF, description="Metric to break out")
    period_mode: PeriodMode = Field(PeriodMode.ANNUAL, description="Annual or year-to-date tables")
    top_k: int = Field(default_factory=lambda: settings.stacked_top_n, ge=1, description="Countries per year")
    selected: List[str] = Field(default_factory=list, description="Countries to stack instead of the Top-K")
    known_keys: List[str] = Field(default_factory=list, description="Commodity codes for context")


class YearComparisonRequest(BaseModel):
    """Request schema for the Year-A/Year-B comparison."""
    payload: Dict[str, Any] = Field(..., description="Deserialized report payload with tables")
    metrics: List[Metric] = Field(default_factory=lambda: [Metric.QUANTITY, Metric.CIF], min_length=1)
    period_mode: PeriodMode = Field(PeriodMode.ANNUAL, description="Annual or year-to-date tables")
    year_a: Optional[str] = Field(None, pattern=r"^(19|20)\d{2}$", description="First year")
    year_b: Optional[str] = Field(None, pattern=r"^(19|20)\d{2}$", description="Second year")
    mode: Literal["abs", "pct"] = Field("abs", description="Absolute or percentage difference")
    sort: Literal["desc", "asc", "abs"] = Field("desc", description="Sort order of rows")
    sort_metric: Optional[Metric] = Field(None, description="Metric used for sorting")
    top_n: int = Field(10, description="Rows returned")
    known_keys: List[str] = Field(default_factory=list, description="Commodity codes for context")

    @field_validator("top_n")
    @classmethod
    def clamp_top_n(cls, v):
        return _clamp_top_n(v)
