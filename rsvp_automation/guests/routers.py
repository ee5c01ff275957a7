from fastapi import APIRouter

from .features.create_guest.router import router as create_guest_router
from .features.update_rsvp.router import router as update_rsvp_router

router = APIRouter()

router.include_router(create_guest_router)
router.include_router(update_rsvp_router)
