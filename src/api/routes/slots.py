from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.api.dependencies import get_db
from src.api.schemas.schemas import SlotListResponse, SlotResponse
from src.application.slot_service import SlotService


router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=SlotListResponse)
def list_available_slots(
    date: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    slots = SlotService(db).list_available(date)
    return SlotListResponse(slots=[SlotResponse.model_validate(s) for s in slots])
