from fastapi import APIRouter
from busline.api.v1.routes.fleet import router as fleet_router
from busline.api.v1.routes.bookings import router as bookings_router
from busline.api.v1.routes.hirings import router as hirings_router
from busline.api.v1.routes.payments import router as payments_router
from busline.api.v1.routes.tickets import router as tickets_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(fleet_router)
api_router.include_router(bookings_router)
api_router.include_router(hirings_router)
api_router.include_router(payments_router)
api_router.include_router(tickets_router)
