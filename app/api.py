"""HTTP route definitions for the service."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.schemas import (
    EligibilityRequest,
    EligibilityResponse,
    FaultResponse,
    RequestErrorResponse,
    render_decision,
)
from models.records import DenialReason
from services.eligibility import (
    EligibilityFaultError,
    EligibilityService,
    InvalidRequestError,
    build_default_service,
)

router = APIRouter()


def get_eligibility_service() -> EligibilityService:
    return build_default_service()


@router.post(
    "/api/bikes/get_available_bikes",
    response_model=EligibilityResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": RequestErrorResponse},
        status.HTTP_401_UNAUTHORIZED: {"model": EligibilityResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": FaultResponse},
    },
    summary="Check whether a rider may start a ride and list nearby bikes.",
)
def get_available_bikes(
    request: EligibilityRequest,
    service: EligibilityService = Depends(get_eligibility_service),
) -> JSONResponse:
    # Sync handler: the pipeline blocks on store calls, so FastAPI runs it in its threadpool.
    try:
        decision = service.evaluate(request.latitude, request.longitude, request.rider_email)
    except InvalidRequestError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=RequestErrorResponse().model_dump(),
        )
    except EligibilityFaultError as exc:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=FaultResponse(message=str(exc)).model_dump(),
        )

    status_code = status.HTTP_200_OK
    if decision.reason is DenialReason.rider_not_found:
        status_code = status.HTTP_401_UNAUTHORIZED
    return JSONResponse(
        status_code=status_code,
        content=render_decision(decision).model_dump(mode="json", by_alias=True),
    )


@router.get(
    "/api/bikes/health",
    summary="Liveness probe for the bikes API.",
    status_code=status.HTTP_200_OK,
)
async def bikes_health() -> dict[str, str]:
    return {"message": "Success"}


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "Welcome to the ride eligibility service."}
