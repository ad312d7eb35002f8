"""Weekly planning endpoints."""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, HTTPException, status

from ...schemas.planning import (
    AlternativeSlotsRequest,
    AlternativeSlotsResponse,
    OptimizeWeekRequest,
    OptimizeWeekResponse,
    WeeklyPlanModel,
)
from ...services.errors import PlanningError, PlanValidationError
from ...services.outputs.formatter import plan_to_model
from ...services.planning import service as planning_service

router = APIRouter(prefix="/plans", tags=["plans"])


@router.post("/optimize", response_model=OptimizeWeekResponse, status_code=status.HTTP_200_OK)
def optimize(payload: OptimizeWeekRequest) -> OptimizeWeekResponse:
    try:
        return planning_service.optimize_week(payload)
    except PlanningError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "plan": plan_to_model(exc.plan).model_dump(mode="json")},
        ) from exc
    except (ValueError, PlanValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error optimizing week: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to optimize week: {str(exc)}",
        ) from exc


@router.get("/active/{week_start}", response_model=WeeklyPlanModel, status_code=status.HTTP_200_OK)
def active_plan(week_start: date) -> WeeklyPlanModel:
    try:
        plan = planning_service.get_active_plan(week_start)
    except PlanValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error loading active plan: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load plan: {str(exc)}",
        ) from exc
    if plan is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No active plan for week {week_start.isoformat()}",
        )
    return plan


@router.post("/alternatives", response_model=AlternativeSlotsResponse, status_code=status.HTTP_200_OK)
def alternatives(payload: AlternativeSlotsRequest) -> AlternativeSlotsResponse:
    try:
        return planning_service.suggest_alternatives(payload)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (ValueError, PlanValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error suggesting alternatives: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to suggest alternatives: {str(exc)}",
        ) from exc
