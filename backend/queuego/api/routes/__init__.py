"""API routes."""

from fastapi import APIRouter

from queuego.api.routes import auth, queue, stores, tickets, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
# Vendor queue routes live under /stores/{id}/queue and must be mounted before
# the generic store routes
api_router.include_router(queue.router, prefix="/stores", tags=["queue"])
api_router.include_router(stores.router, prefix="/stores", tags=["stores"])
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
