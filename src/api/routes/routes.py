from fastapi import APIRouter

from src.api.routes import admin, bookings, payments, slots, tickets, webhooks
from src.api.schemas.schemas import ErrorResponse


router = APIRouter(
    responses={
        code: {"model": ErrorResponse}
        for code in (400, 401, 403, 404, 409, 502)
    },
)


@router.get("/health")
def health():
    return {"status": "ok"}


router.include_router(slots.router)
router.include_router(bookings.router)
router.include_router(payments.router)
router.include_router(webhooks.router)
router.include_router(tickets.router)
router.include_router(admin.router)
