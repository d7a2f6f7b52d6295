"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from models.records import Bike, DenialReason, EligibilityDecision

SUCCESS_MESSAGE = "Success"
MISSING_PARAMETERS_ERROR = "missing required parameters"
FAULT_ERROR = "eligibility check failed"

DENIAL_MESSAGES: Dict[DenialReason, str] = {
    DenialReason.rider_not_found: "rider not found",
    DenialReason.account_blocked: "account blocked",
    DenialReason.balance_too_low: "balance too low",
    DenialReason.not_serviceable: "not serviceable in this area",
    DenialReason.no_bikes_available: "no bikes available",
}


class EligibilityRequest(BaseModel):
    """Inbound eligibility check. Presence is enforced by the pipeline, not here."""

    latitude: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("latitude", "lat")
    )
    longitude: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("longitude", "long", "lng")
    )
    rider_email: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("riderEmail", "email")
    )

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def reject_booleans(cls, value: object) -> object:
        # JSON true/false would otherwise coerce to 1.0/0.0.
        if isinstance(value, bool):
            raise ValueError("coordinates must be numeric")
        return value


class BikePayload(BaseModel):
    """A bike as exposed to riders and stored in the audit ledger."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    designation: int
    latitude: float
    longitude: float
    status: str
    is_faulty: bool = Field(alias="isFaulty")
    category: str

    @classmethod
    def from_bike(cls, bike: Bike) -> "BikePayload":
        return cls(
            id=bike.id,
            designation=bike.designation,
            latitude=bike.latitude,
            longitude=bike.longitude,
            status=bike.status,
            is_faulty=bike.is_faulty,
            category=bike.category,
        )


class EligibilityData(BaseModel):
    balance: float
    allow_ride: bool
    bikes: List[BikePayload] = Field(default_factory=list)


class EligibilityResponse(BaseModel):
    """Envelope shared by every allow and deny outcome."""

    message: str
    data: EligibilityData


class RequestErrorResponse(BaseModel):
    error: str = MISSING_PARAMETERS_ERROR


class FaultResponse(BaseModel):
    error: str = FAULT_ERROR
    message: str


def decision_message(decision: EligibilityDecision) -> str:
    if decision.allow_ride or decision.reason is None:
        return SUCCESS_MESSAGE
    return DENIAL_MESSAGES[decision.reason]


def render_decision(decision: EligibilityDecision) -> EligibilityResponse:
    bikes = [BikePayload.from_bike(bike) for bike in decision.bikes] if decision.allow_ride else []
    return EligibilityResponse(
        message=decision_message(decision),
        data=EligibilityData(
            balance=decision.balance,
            allow_ride=decision.allow_ride,
            bikes=bikes,
        ),
    )
