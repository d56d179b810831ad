"""Store registry and service catalog.

Stores are created and configured by their owner. They are never removed
from the database: deactivation flips ``is_active`` and cancels whatever
tickets are still in the queue.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from queuego.core.exceptions import ForbiddenError, NotFoundError
from queuego.db.base import utcnow
from queuego.models.store import Store, StoreOffering
from queuego.models.ticket import ACTIVE_STATUSES, Ticket, TicketStatus
from queuego.schemas.store import OfferingCreate, StoreCreate, StoreUpdate
from queuego.services import queue_queries
from queuego.services.notification_service import (
    NotificationPublisher,
    TicketEventType,
    publish_ticket_event,
)
from queuego.services.wait_time_service import WaitTimeService

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

# Columns that may not be set to NULL through a partial update
_REQUIRED_FIELDS = {
    "name", "category", "address", "open_time", "close_time",
    "deposit", "default_service_time", "is_open",
}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _coordinate(value: Optional[str]) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _column_values(data: Dict[str, Any]) -> Dict[str, Any]:
    """Convert schema values to what the store columns hold."""
    values = dict(data)
    for key in ("latitude", "longitude"):
        if values.get(key) is not None:
            values[key] = str(values[key])
    return values


class StoreRegistryService:
    """Store configuration, ownership and the per-store service catalog."""

    def __init__(self, db: Session, publisher: Optional[NotificationPublisher] = None):
        self.db = db
        self.publisher = publisher

    # ===== LOOKUPS =====

    def get_store(self, store_id: int) -> Store:
        """Active store by id, or NotFoundError."""
        store = self.db.query(Store).filter(Store.id == store_id, Store.is_active.is_(True)).first()
        if not store:
            raise NotFoundError("Store not found")
        return store

    def require_owned_store(self, store_id: int, owner_id: int) -> Store:
        """Active store the caller owns.

        Raises NotFoundError when the store does not exist and ForbiddenError
        when it belongs to someone else.
        """
        store = self.get_store(store_id)
        if store.owner_id != owner_id:
            logger.warning(f"User {owner_id} attempted vendor action on store {store_id}")
            raise ForbiddenError("Store not found or unauthorized")
        return store

    @staticmethod
    def is_accepting_tickets(store: Store) -> bool:
        return store.is_accepting_tickets

    def list_stores(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        is_open: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """Active stores with their waiting count.

        With a reference point, stores are ordered nearest first and carry
        ``distance_km``; stores without coordinates sort last.
        """
        query = self.db.query(Store).filter(Store.is_active.is_(True))

        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Store.name.ilike(pattern),
                Store.category.ilike(pattern),
                Store.description.ilike(pattern),
            ))
        if category:
            query = query.filter(Store.category == category)
        if is_open is not None:
            query = query.filter(Store.is_open == is_open)

        query = query.order_by(Store.created_at.desc(), Store.id.desc())
        near = latitude is not None and longitude is not None

        if near:
            stores = query.all()
        else:
            stores = query.offset(offset).limit(limit).all()

        counts = queue_queries.waiting_counts(self.db, (s.id for s in stores))
        items = []
        for store in stores:
            item = {
                "id": store.id,
                "name": store.name,
                "category": store.category,
                "description": store.description,
                "address": store.address,
                "city": store.city,
                "image_url": store.image_url,
                "rating": store.rating,
                "total_reviews": store.total_reviews,
                "is_open": store.is_open,
                "deposit": store.deposit,
                "phone": store.phone,
                "queue_count": counts.get(store.id, 0),
                "distance_km": None,
            }
            if near:
                lat, lon = _coordinate(store.latitude), _coordinate(store.longitude)
                if lat is not None and lon is not None:
                    item["distance_km"] = round(haversine_km(latitude, longitude, lat, lon), 2)
            items.append(item)

        if near:
            items.sort(key=lambda i: (i["distance_km"] is None, i["distance_km"] or 0.0))
            items = items[offset:offset + limit]
        return items

    def list_owned_stores(self, owner_id: int) -> List[Store]:
        return (
            self.db.query(Store)
            .filter(Store.owner_id == owner_id, Store.is_active.is_(True))
            .order_by(Store.created_at.desc(), Store.id.desc())
            .all()
        )

    def get_store_detail(self, store_id: int) -> Dict[str, Any]:
        """Store with its catalog, queue length, serving number and wait for a new joiner."""
        store = self.get_store(store_id)
        queue_count = queue_queries.waiting_count(self.db, store.id)
        serving = queue_queries.serving_ticket(self.db, store.id)
        return {
            "store": store,
            "offerings": list(store.offerings),
            "queue_count": queue_count,
            "current_ticket": serving.ticket_number if serving else None,
            "estimated_wait_time": WaitTimeService(self.db).estimate_wait(store, queue_count),
        }

    # ===== OWNER ACTIONS =====

    def create_store(self, owner_id: int, data: StoreCreate) -> Store:
        store = Store(
            owner_id=owner_id,
            is_open=True,
            is_active=True,
            last_ticket_number=0,
            **_column_values(data.model_dump(mode="json")),
        )
        self.db.add(store)
        self.db.commit()
        self.db.refresh(store)
        logger.info(f"Store {store.id} '{store.name}' created by user {owner_id}")
        return store

    def update_store(self, store_id: int, owner_id: int, changes: StoreUpdate) -> Store:
        store = self.require_owned_store(store_id, owner_id)
        updates = _column_values(changes.model_dump(exclude_unset=True, mode="json"))
        for key, value in updates.items():
            if value is None and key in _REQUIRED_FIELDS:
                continue
            setattr(store, key, value)
        self.db.commit()
        self.db.refresh(store)
        return store

    def set_open(self, store_id: int, owner_id: int, is_open: bool) -> Store:
        """Open or close the store for new tickets. Idempotent."""
        store = self.require_owned_store(store_id, owner_id)
        if store.is_open != is_open:
            store.is_open = is_open
            self.db.commit()
            self.db.refresh(store)
            logger.info(f"Store {store_id} is now {'open' if is_open else 'closed'}")
        return store

    def deactivate_store(self, store_id: int, owner_id: int) -> Store:
        """Soft-delete a store and cancel every ticket still in its queue."""
        store = self.require_owned_store(store_id, owner_id)
        now = utcnow()

        active = (
            self.db.query(Ticket)
            .filter(Ticket.store_id == store.id, Ticket.status.in_(ACTIVE_STATUSES))
            .all()
        )
        for ticket in active:
            ticket.status = TicketStatus.CANCELLED
            ticket.cancelled_at = now
            ticket.completed_at = now

        store.is_active = False
        store.is_open = False
        self.db.commit()
        logger.info(f"Store {store_id} deactivated; {len(active)} active tickets cancelled")

        for ticket in active:
            publish_ticket_event(self.db, self.publisher, TicketEventType.CANCELLED, ticket, store)
        return store

    # ===== SERVICE CATALOG =====

    def add_offering(self, store_id: int, owner_id: int, data: OfferingCreate) -> StoreOffering:
        store = self.require_owned_store(store_id, owner_id)
        offering = StoreOffering(store_id=store.id, **data.model_dump())
        self.db.add(offering)
        self.db.commit()
        self.db.refresh(offering)
        return offering

    def remove_offering(self, offering_id: int, owner_id: int) -> None:
        offering = self.db.get(StoreOffering, offering_id)
        if not offering or offering.store.owner_id != owner_id:
            raise NotFoundError("Service not found or unauthorized")
        self.db.delete(offering)
        self.db.commit()

    def list_offerings(self, store_id: int) -> List[StoreOffering]:
        store = self.get_store(store_id)
        return list(store.offerings)
