"""Draft router - save and resume in-progress bookings"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import Principal, get_current_principal
from ...database import get_db
from ...shared.exceptions import NotFoundError
from ..ephemeral.schemas import EphemeralRecordResponse
from .schemas import (
    AutoSaveResponse,
    BookingDraftPayload,
    DraftListResponse,
    DraftResponse,
    DraftSavedResponse,
)
from .service import DraftManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drafts", tags=["Drafts"])


def get_draft_manager(db: Session = Depends(get_db)) -> DraftManager:
    """Dependency injection for DraftManager"""
    return DraftManager(db)


def _payload(data: BookingDraftPayload) -> dict:
    return data.model_dump(mode="json", exclude_unset=True)


@router.post("", response_model=DraftSavedResponse, status_code=201)
async def save_draft(
    data: BookingDraftPayload,
    principal: Principal = Depends(get_current_principal),
    manager: DraftManager = Depends(get_draft_manager),
):
    """Start a new draft"""
    draft_id = manager.save_draft(principal.user_id, _payload(data))
    return DraftSavedResponse(draftId=draft_id)


@router.put("/{draft_id}", response_model=DraftSavedResponse)
async def overwrite_draft(
    draft_id: str,
    data: BookingDraftPayload,
    principal: Principal = Depends(get_current_principal),
    manager: DraftManager = Depends(get_draft_manager),
):
    """Replace a draft's contents (no merge)"""
    draft_id = manager.save_draft(principal.user_id, _payload(data), draft_key=draft_id)
    return DraftSavedResponse(draftId=draft_id)


@router.get("", response_model=DraftListResponse)
async def list_drafts(
    principal: Principal = Depends(get_current_principal),
    manager: DraftManager = Depends(get_draft_manager),
):
    drafts = manager.list_drafts(principal.user_id)
    return DraftListResponse(
        drafts=[EphemeralRecordResponse.from_record(d) for d in drafts],
        total=len(drafts),
    )


@router.get("/{draft_id}", response_model=DraftResponse)
async def get_draft(
    draft_id: str,
    principal: Principal = Depends(get_current_principal),
    manager: DraftManager = Depends(get_draft_manager),
):
    data = manager.get_draft(draft_id, owner=principal.user_id)
    if data is None:
        raise NotFoundError("Draft not found or expired", draftId=draft_id)
    return DraftResponse(draftId=draft_id, data=data)


@router.delete("/{draft_id}")
async def delete_draft(
    draft_id: str,
    principal: Principal = Depends(get_current_principal),
    manager: DraftManager = Depends(get_draft_manager),
):
    if not manager.delete_draft(draft_id, owner=principal.user_id):
        raise NotFoundError("Draft not found or expired", draftId=draft_id)
    return {"message": "Draft deleted successfully"}


@router.post("/auto-save", response_model=AutoSaveResponse)
async def auto_save_draft(
    data: BookingDraftPayload,
    principal: Principal = Depends(get_current_principal),
    manager: DraftManager = Depends(get_draft_manager),
):
    """Merge form progress into the caller's latest draft"""
    record = manager.auto_save_draft(principal.user_id, _payload(data))
    return AutoSaveResponse(draftId=record.key, data=dict(record.payload or {}), lastSaved=record.updated_at)
