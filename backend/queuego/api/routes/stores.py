"""Store registry routes: browsing, owner configuration and service catalog."""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Query, Request, status

from queuego.api.deps import Notifier
from queuego.core.auth import CurrentUser
from queuego.core.rate_limit import limiter
from queuego.db.session import DbSession
from queuego.models.store import StoreCategory
from queuego.schemas.store import (
    OfferingCreate,
    OfferingResponse,
    StoreCreate,
    StoreDetailResponse,
    StoreListItem,
    StoreResponse,
    StoreStatusUpdate,
    StoreUpdate,
)
from queuego.services.store_service import StoreRegistryService

router = APIRouter()


@router.get("", response_model=List[StoreListItem])
@limiter.limit("60/minute")
def list_stores(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    search: Optional[str] = Query(None, max_length=100),
    category: Optional[StoreCategory] = None,
    is_open: Optional[bool] = None,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """Browse active stores; pass lat/lng to sort nearest first."""
    items = StoreRegistryService(db).list_stores(
        search=search,
        category=category.value if category else None,
        is_open=is_open,
        limit=limit,
        offset=offset,
        latitude=lat,
        longitude=lng,
    )
    return [StoreListItem(**item) for item in items]


@router.get("/mine", response_model=List[StoreResponse])
@limiter.limit("60/minute")
def list_my_stores(request: Request, db: DbSession, current_user: CurrentUser):
    return StoreRegistryService(db).list_owned_stores(current_user.user_id)


@router.get("/{store_id}", response_model=StoreDetailResponse)
@limiter.limit("60/minute")
def get_store(request: Request, store_id: int, db: DbSession, current_user: CurrentUser):
    """Store with catalog, queue length, now-serving number and wait for a new joiner."""
    detail = StoreRegistryService(db).get_store_detail(store_id)
    return StoreDetailResponse(
        **StoreResponse.model_validate(detail["store"]).model_dump(),
        offerings=[OfferingResponse.model_validate(o) for o in detail["offerings"]],
        queue_count=detail["queue_count"],
        current_ticket=detail["current_ticket"],
        estimated_wait_time=detail["estimated_wait_time"],
    )


@router.post("", response_model=StoreResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
def create_store(request: Request, data: StoreCreate, db: DbSession, current_user: CurrentUser):
    """Register a store owned by the caller."""
    return StoreRegistryService(db).create_store(current_user.user_id, data)


@router.patch("/{store_id}", response_model=StoreResponse)
@limiter.limit("30/minute")
def update_store(
    request: Request, store_id: int, data: StoreUpdate, db: DbSession, current_user: CurrentUser
):
    return StoreRegistryService(db).update_store(store_id, current_user.user_id, data)


@router.post("/{store_id}/status", response_model=StoreResponse)
@limiter.limit("30/minute")
def set_store_status(
    request: Request, store_id: int, data: StoreStatusUpdate, db: DbSession, current_user: CurrentUser
):
    """Open or close the store for new tickets. Existing tickets are untouched."""
    return StoreRegistryService(db).set_open(store_id, current_user.user_id, data.is_open)


@router.delete("/{store_id}")
@limiter.limit("10/minute")
def deactivate_store(
    request: Request,
    store_id: int,
    db: DbSession,
    current_user: CurrentUser,
    notifier: Notifier,
    background_tasks: BackgroundTasks,
):
    """Deactivate the store and cancel its remaining queue."""
    StoreRegistryService(db, publisher=notifier).deactivate_store(store_id, current_user.user_id)
    if notifier.pending:
        background_tasks.add_task(notifier.flush)
    return {"message": "Store deactivated"}


@router.post("/{store_id}/services", response_model=OfferingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_service(
    request: Request, store_id: int, data: OfferingCreate, db: DbSession, current_user: CurrentUser
):
    return StoreRegistryService(db).add_offering(store_id, current_user.user_id, data)


@router.delete("/services/{service_id}")
@limiter.limit("30/minute")
def remove_service(request: Request, service_id: int, db: DbSession, current_user: CurrentUser):
    StoreRegistryService(db).remove_offering(service_id, current_user.user_id)
    return {"message": "Service deleted"}
