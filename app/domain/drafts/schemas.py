"""Draft domain schemas - Pydantic models for booking drafts"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from ..ephemeral.schemas import EphemeralRecordResponse


class BookingDraftPayload(BaseModel):
    """
    Partial booking form held in the ephemeral store.

    Every field is optional because drafts are saved mid-composition; unknown
    form fields are kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    pickupAddress: Optional[dict[str, Any]] = None
    deliveryAddress: Optional[dict[str, Any]] = None
    packageType: Optional[str] = None
    weight: Optional[float] = None
    serviceType: Optional[str] = None
    pickupDate: Optional[str] = None
    specialInstructions: Optional[str] = None
    insurance: Optional[bool] = None
    insuranceValue: Optional[float] = None
    currentStep: Optional[int] = None


class DraftSavedResponse(BaseModel):
    draftId: str
    message: str = "Draft saved successfully"


class DraftResponse(BaseModel):
    draftId: str
    data: dict


class AutoSaveResponse(BaseModel):
    draftId: str
    data: dict
    lastSaved: Any


class DraftListResponse(BaseModel):
    drafts: list[EphemeralRecordResponse]
    total: int
