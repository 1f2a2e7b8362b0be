# WORKFLOW: Trade report endpoints that normalize report payloads supplied by the caller.
# Used by: Dashboard backends, direct API calls, integration testing
# Endpoints:
# 1. /trade-report - Normalized records (or a Top-N breakout when breakout=true)
# 2. /trade-report/stacked - Top-K plus Others per year
# 3. /trade-report/compare - Per-country Year-A/Year-B differences
#
# Request flow: HTTP POST -> Pydantic validation -> Trade stats engine -> Schema validation -> Response
# The adapter fetches nothing and caches nothing; the payload arrives in the request body.

import logging
from typing import List, Union

import jsonschema
from fastapi import APIRouter, HTTPException, status
from pydantic import ValidationError

from api.schemas.request import StackedBreakdownRequest, TradeReportRequest, YearComparisonRequest
from api.schemas.response import BreakoutResult, NormalizedReport, StackedBreakdownRow, YearComparison
from api.schemas.validation import validate_report
from services.trade_stats_engine import create_trade_stats_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["trade-report"])


def _table_count(payload: dict) -> int:
    tables = payload.get("tables")
    if not isinstance(tables, list):
        dto = payload.get("dto")
        tables = dto.get("tables") if isinstance(dto, dict) else None
    return len(tables) if isinstance(tables, list) else 0


@router.post("/trade-report", response_model=Union[BreakoutResult, NormalizedReport])
async def get_trade_report(request: TradeReportRequest):
    """
    Normalize a trade statistics report payload.

    Returns one record per (rollup key, year) with reconciliation diagnostics,
    or a per-country Top-N breakout when ``breakout`` is set.
    """
    try:
        logger.info(
            f"Trade report request: metric={request.metric.value}, period={request.period_mode.value}, "
            f"breakout={request.breakout}, tables={_table_count(request.payload)}"
        )

        engine = create_trade_stats_engine()
        if request.breakout:
            response = engine.breakout(
                request.payload,
                metric=request.metric,
                period_mode=request.period_mode,
                year=request.breakout_year,
                top_n=request.top_n,
                known_keys=request.known_keys,
            )
        else:
            response = engine.normalize(
                request.payload,
                period_mode=request.period_mode,
                known_keys=request.known_keys,
                metric=request.metric,
                context=request.key_context,
            )

        validate_report(response)
        logger.info("Trade report built and validated")
        return response

    except (ValidationError, ValueError) as e:
        logger.error(f"Validation failed: {e}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except jsonschema.ValidationError as e:
        logger.error(f"Response failed schema gate: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Response failed schema validation: {e.message}",
        )
    except Exception as e:
        logger.error(f"Trade report request failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to build trade report: {str(e)}",
        )


@router.post("/trade-report/stacked", response_model=List[StackedBreakdownRow])
async def get_stacked_breakdown(request: StackedBreakdownRequest):
    """Top-K countries plus Others for every year of the report."""
    try:
        logger.info(
            f"Stacked breakdown request: metric={request.metric.value}, top_k={request.top_k}, "
            f"selected={len(request.selected)}, tables={_table_count(request.payload)}"
        )
        rows = create_trade_stats_engine().stacked(
            request.payload,
            metric=request.metric,
            period_mode=request.period_mode,
            top_k=request.top_k,
            selected=request.selected or None,
            known_keys=request.known_keys,
        )
        validate_report(rows, "StackedBreakdown")
        return rows

    except (ValidationError, ValueError) as e:
        logger.error(f"Validation failed: {e}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except Exception as e:
        logger.error(f"Stacked breakdown request failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to build stacked breakdown: {str(e)}",
        )


@router.post("/trade-report/compare", response_model=YearComparison)
async def get_year_comparison(request: YearComparisonRequest):
    """Per-country differences between two years across the requested metrics."""
    try:
        logger.info(
            f"Year comparison request: metrics={[m.value for m in request.metrics]}, "
            f"years={request.year_a}/{request.year_b}, mode={request.mode}"
        )
        comparison = create_trade_stats_engine().compare(
            request.payload,
            metrics=request.metrics,
            period_mode=request.period_mode,
            year_a=request.year_a,
            year_b=request.year_b,
            mode=request.mode,
            sort=request.sort,
            sort_metric=request.sort_metric.value if request.sort_metric else None,
            top_n=request.top_n,
            known_keys=request.known_keys,
        )
        validate_report(comparison)
        return comparison

    except (ValidationError, ValueError) as e:
        logger.error(f"Validation failed: {e}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except Exception as e:
        logger.error(f"Year comparison request failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to build year comparison: {str(e)}",
        )
