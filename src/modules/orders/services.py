"""Order service layer (Use Cases).

Orchestrates the order lifecycle: checkout, business responses, preparation,
courier pickup and delivery, cancellation (manual and automatic), ratings,
tracking and archiving.  The service defines the unit-of-work boundary;
every transition locks the order row, checks its guard, persists, appends a
history record and records a domain event in the outbox.

Business rules enforced:
- Transitions follow ``VALID_TRANSITIONS``; terminal orders never change.
- Cancelling an order that is already cancelled is a no-op.
- A pending order is cancelled automatically once the response window has
  elapsed.  Expiry is evaluated, in its own transaction, before any read or
  business response, so an accept after the deadline fails with
  ``TerminalState``.
- Preparation time is set once, while accepted, and is required before
  preparation starts.
- Only an online courier can claim a ready, unassigned order; delivery
  credits the courier with ``COURIER_COMMISSION_RATE`` of the total.
- On a persistence failure the in-memory order is restored and
  ``PersistenceFailure`` propagates.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.businesses.exceptions import (
    BusinessClosed,
    BusinessNotFound,
    ProductNotFound,
    ProductUnavailable,
)
from modules.core.exceptions import PersistenceFailure
from modules.core.geocoding import ReverseGeocoder
from modules.core.roles import SYSTEM_ACTOR, Actor, Role
from modules.couriers.exceptions import CourierNotFound, CourierOffline
from modules.orders.constants import (
    AUTO_CANCEL_NOTE,
    MANUAL_CANCEL_NOTE,
    REJECTED_NOTE,
    OrderStatus,
)
from modules.orders.dtos import (
    BusinessStatsDTO,
    CourierHistoryDTO,
    DailyEarningsDTO,
    GlobalStatsDTO,
    OrderOutputDTO,
    ProductSalesDTO,
    TrackingOutputDTO,
)
from modules.orders.estimation import estimate_delivery_time
from modules.orders.events import (
    CourierAssigned,
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderRated,
    OrderStatusChanged,
    PreparationTimeSet,
)
from modules.orders.exceptions import (
    AlreadyAssigned,
    AlreadyRated,
    InvalidTransition,
    NotReady,
    OrderNotFound,
    RatingNotAllowed,
    TerminalState,
)
from modules.orders.models import DeliveryTracking
from modules.orders.scheduling import (
    new_task_id,
    revoke_task,
    schedule_auto_cancel,
    schedule_tracking_tick,
)
from modules.orders.snapshots import build_order_snapshot, order_cache
from modules.orders.tracking import PositionInterpolator
from shared.domain.geo import haversine_distance_m

if TYPE_CHECKING:
    from modules.businesses.repositories.interfaces import IBusinessRepository
    from modules.couriers.models import DeliveryPerson
    from modules.couriers.repositories.interfaces import ICourierRepository
    from modules.orders.dtos import CreateOrderDTO, QuickMessageDTO, RateOrderDTO
    from modules.orders.models import Order, QuickMessage
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")

# Fields a failed save must put back on the in-memory order.
RESTORABLE_FIELDS = (
    "status",
    "preparation_time",
    "delivery_person_id",
    "auto_cancel_task_id",
    "accepted_at",
    "delivered_at",
    "client_rating",
    "delivery_rating",
)


def commission_for(total_price: Decimal) -> Decimal:
    return (total_price * settings.COURIER_COMMISSION_RATE).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        business_repository: IBusinessRepository,
        courier_repository: ICourierRepository,
        geocoder: Optional[ReverseGeocoder] = None,
    ) -> None:
        self._order_repo = order_repository
        self._business_repo = business_repository
        self._courier_repo = courier_repository
        self._geocoder = geocoder

    @property
    def geocoder(self) -> ReverseGeocoder:
        if self._geocoder is None:
            self._geocoder = ReverseGeocoder()
        return self._geocoder

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_order(self, client_id: str, dto: CreateOrderDTO) -> Order:
        """Convert a cart into a pending order and start its response window.

        The cart is validated and the address resolved before the write
        transaction opens, so no database transaction waits on the geocoder.

        Raises:
            BusinessNotFound: the business does not exist.
            BusinessClosed: the business is not taking orders.
            ProductNotFound: a product is not on this business's menu.
            ProductUnavailable: a product is marked unavailable.
        """
        log = logger.bind(client_id=client_id, business_id=str(dto.business_id))
        log.info("order.creation_started")

        business = self._business_repo.get_by_id(str(dto.business_id))
        if not business:
            raise BusinessNotFound(f"Business {dto.business_id} not found.")
        if not business.is_open:
            raise BusinessClosed(f"{business.name} is closed.")

        requested = [str(item.product_id) for item in dto.items]
        products = self._business_repo.get_products(str(business.id), requested)
        lines = []
        for item in dto.items:
            product = products.get(str(item.product_id))
            if product is None:
                raise ProductNotFound(f"Product {item.product_id} not found.")
            if not product.is_available:
                raise ProductUnavailable(f"{product.name} is not available.")
            lines.append(
                {
                    "product_id": product.id,
                    "name": product.name,
                    "quantity": item.quantity,
                    "unit_price": product.price,
                }
            )

        address = dto.delivery_address
        full_address = address.full_address.strip()
        coordinates = address.coordinates
        if not full_address and coordinates is not None:
            full_address = self.geocoder.reverse(coordinates)

        order = self._place_order(
            {
                "client_id": client_id,
                "business": business,
                "status": OrderStatus.PENDING,
                "delivery_fee": business.delivery_fee,
                "delivery_address": full_address,
                "delivery_lat": coordinates.lat if coordinates else None,
                "delivery_lng": coordinates.lng if coordinates else None,
                "special_notes": dto.special_notes,
                "items": lines,
            }
        )
        log.info("order.created", order_id=str(order.id), total_price=str(order.total_price))
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def _place_order(self, data: Dict[str, Any]) -> Order:
        business = data["business"]
        client_id = data["client_id"]
        task_id = new_task_id()
        order = self._order_repo.create({**data, "auto_cancel_task_id": task_id})
        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                business_id=str(business.id),
                client_id=client_id,
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            new_status=OrderStatus.PENDING,
            notes="Order created",
            actor_id=client_id,
        )
        transaction.on_commit(partial(schedule_auto_cancel, order.id, task_id))
        return order

    # ------------------------------------------------------------------
    # Business responses
    # ------------------------------------------------------------------

    def accept_order(self, order_id: Any, actor: Actor) -> Order:
        """pending -> accepted.  Revokes the pending auto-cancel task.

        Raises:
            OrderNotFound, TerminalState, InvalidTransition, PersistenceFailure.
        """
        self.expire_if_overdue(order_id)
        with transaction.atomic():
            order = self._lock_business_order(order_id, actor)
            order.ensure_can_transition(OrderStatus.ACCEPTED)
            task_id = order.auto_cancel_task_id

            def mutate() -> None:
                order.accepted_at = timezone.now()
                order.auto_cancel_task_id = ""

            self._transition(order, OrderStatus.ACCEPTED, actor_id=actor.subject, mutate=mutate)
            transaction.on_commit(partial(revoke_task, task_id))
        logger.info("order.accepted", order_id=str(order.id))
        return self._reload(order)

    def reject_order(self, order_id: Any, actor: Actor) -> Order:
        """pending -> cancelled by the business.  No-op when already cancelled."""
        self.expire_if_overdue(order_id)
        with transaction.atomic():
            order = self._lock_business_order(order_id, actor)
            if order.status == OrderStatus.CANCELLED:
                return self._reload(order)
            if order.is_terminal:
                raise TerminalState(f"Order {order.id} is already {order.status}.")
            if order.status != OrderStatus.PENDING:
                raise InvalidTransition(f"Cannot reject an order that is {order.status}.")
            self._cancel(order, actor, notes=REJECTED_NOTE)
        logger.info("order.rejected", order_id=str(order.id))
        return self._reload(order)

    def set_preparation_time(self, order_id: Any, actor: Actor, minutes: int) -> Order:
        """Record how long the kitchen needs.  Allowed once, while accepted.

        Raises:
            ValueError: ``minutes`` is not a positive integer.
            InvalidTransition: not accepted, or preparation time already set.
            TerminalState: the order is delivered or cancelled.
        """
        if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 1:
            raise ValueError("Preparation time must be a positive number of minutes.")

        with transaction.atomic():
            order = self._lock_business_order(order_id, actor)
            if order.is_terminal:
                raise TerminalState(f"Order {order.id} is already {order.status}.")
            if order.status != OrderStatus.ACCEPTED:
                raise InvalidTransition(
                    f"Preparation time can only be set on accepted orders, not {order.status}."
                )
            if order.preparation_time is not None:
                raise InvalidTransition("Preparation time has already been set.")

            previous = self._capture(order)
            order.preparation_time = minutes
            order.add_domain_event(PreparationTimeSet(aggregate_id=order.id, minutes=minutes))
            self._persist(order, previous)
            self._order_repo.add_history(
                order_id=order.id,
                old_status=order.status,
                new_status=order.status,
                notes=f"Preparation time set to {minutes} min",
                actor_id=actor.subject,
            )
        logger.info("order.preparation_time_set", order_id=str(order.id), minutes=minutes)
        return self._reload(order)

    def start_preparing(self, order_id: Any, actor: Actor) -> Order:
        with transaction.atomic():
            order = self._lock_business_order(order_id, actor)
            order.ensure_can_transition(OrderStatus.PREPARING)
            if order.preparation_time is None:
                raise InvalidTransition("Set a preparation time before starting preparation.")
            self._transition(order, OrderStatus.PREPARING, actor_id=actor.subject)
        logger.info("order.preparing", order_id=str(order.id))
        return self._reload(order)

    def mark_ready(self, order_id: Any, actor: Actor) -> Order:
        with transaction.atomic():
            order = self._lock_business_order(order_id, actor)
            order.ensure_can_transition(OrderStatus.READY)
            self._transition(order, OrderStatus.READY, actor_id=actor.subject)
        logger.info("order.ready", order_id=str(order.id))
        return self._reload(order)

    def cancel_order(self, order_id: Any, actor: Actor, notes: str = "") -> Order:
        """Manual cancellation, allowed from pending and accepted.

        Raises:
            TerminalState: the order was delivered.
            InvalidTransition: preparation has already started.
        """
        self.expire_if_overdue(order_id)
        with transaction.atomic():
            order = self._lock_business_order(order_id, actor)
            if order.status == OrderStatus.CANCELLED:
                return self._reload(order)
            order.ensure_can_transition(OrderStatus.CANCELLED)
            self._cancel(order, actor, notes=notes or MANUAL_CANCEL_NOTE)
        logger.info("order.cancelled", order_id=str(order.id))
        return self._reload(order)

    # ------------------------------------------------------------------
    # Auto-cancellation
    # ------------------------------------------------------------------

    @transaction.atomic
    def expire_if_overdue(self, order_id: Any, now: Optional[datetime] = None) -> bool:
        """Cancel the order if its response window has closed.

        Safe to call any number of times: the row lock plus the status
        re-check make the cancellation happen exactly once.
        """
        order = self._order_repo.get_for_update(str(order_id))
        if order is None or not order.is_overdue(now):
            return False
        self._cancel(order, SYSTEM_ACTOR, notes=AUTO_CANCEL_NOTE, automatic=True)
        logger.info(
            "order.auto_cancelled",
            order_id=str(order.id),
            business_id=str(order.business_id),
        )
        return True

    def expire_overdue_orders(self, now: Optional[datetime] = None) -> int:
        """Sweep every pending order whose window has closed."""
        now = now or timezone.now()
        cutoff = now - timedelta(seconds=settings.ORDER_AUTO_CANCEL_SECONDS)
        expired = 0
        for order_id in self._order_repo.list_overdue_pending_ids(cutoff):
            if self.expire_if_overdue(order_id, now):
                expired += 1
        if expired:
            logger.info("order.overdue_swept", expired=expired)
        return expired

    # ------------------------------------------------------------------
    # Courier actions
    # ------------------------------------------------------------------

    def accept_for_delivery(self, order_id: Any, actor: Actor) -> Order:
        """ready -> delivering: assign the calling courier and start tracking.

        Raises:
            CourierNotFound: the caller has no courier profile.
            TerminalState: the order is delivered or cancelled.
            AlreadyAssigned: another courier already claimed it.
            NotReady: the order is not waiting for pickup.
            CourierOffline: the courier is offline.
        """
        profile = self._courier_for(actor)
        with transaction.atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found.")
            if order.is_terminal:
                raise TerminalState(f"Order {order.id} is already {order.status}.")
            if order.delivery_person_id is not None:
                raise AlreadyAssigned(f"Order {order.id} already has a courier.")
            if order.status != OrderStatus.READY:
                raise NotReady(f"Order {order.id} is {order.status}, not ready.")
            courier = self._courier_repo.get_for_update(str(profile.id)) or profile
            if not courier.is_online:
                raise CourierOffline("Go online before accepting orders.")

            def mutate() -> None:
                order.delivery_person = courier

            self._transition(
                order,
                OrderStatus.DELIVERING,
                actor_id=actor.subject,
                mutate=mutate,
                event_class=CourierAssigned,
                event_kwargs={"courier_id": str(courier.id)},
            )
            self._start_tracking(order, courier)
        logger.info("order.courier_assigned", order_id=str(order.id), courier_id=str(courier.id))
        return self._reload(order)

    def mark_delivered(self, order_id: Any, actor: Actor) -> Order:
        """delivering -> delivered: credit the courier and stop tracking.

        Raises:
            CourierNotFound: the caller has no courier profile.
            TerminalState: the order is delivered or cancelled.
            AlreadyAssigned: the caller is not the assigned courier.
            InvalidTransition: the order is not being delivered.
        """
        courier = self._courier_for(actor)
        with transaction.atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found.")
            if order.is_terminal:
                raise TerminalState(f"Order {order.id} is already {order.status}.")
            if order.delivery_person_id != courier.id:
                raise AlreadyAssigned(f"Order {order.id} is not assigned to you.")
            order.ensure_can_transition(OrderStatus.DELIVERED)

            commission = commission_for(order.total_price)

            def mutate() -> None:
                order.delivered_at = timezone.now()

            self._transition(
                order,
                OrderStatus.DELIVERED,
                actor_id=actor.subject,
                mutate=mutate,
                event_class=OrderDelivered,
                event_kwargs={"courier_id": str(courier.id), "commission": str(commission)},
            )
            self._courier_repo.credit_delivery(str(courier.id), commission)
            self._stop_tracking(order)
        logger.info(
            "order.delivered",
            order_id=str(order.id),
            courier_id=str(courier.id),
            commission=str(commission),
        )
        return self._reload(order)

    def send_quick_message(self, order_id: Any, actor: Actor, dto: QuickMessageDTO) -> QuickMessage:
        courier = self._courier_for(actor)
        with transaction.atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found.")
            if order.delivery_person_id != courier.id:
                raise AlreadyAssigned(f"Order {order.id} is not assigned to you.")
            if order.status != OrderStatus.DELIVERING:
                raise InvalidTransition("Messages can only be sent while delivering.")
            message = self._order_repo.add_quick_message(order.id, actor.subject, dto.message)
        logger.info("order.quick_message_sent", order_id=str(order.id))
        return message

    def list_quick_messages(self, order_id: Any, actor: Actor) -> List[QuickMessage]:
        order = self.get_order(order_id, actor)
        return list(order.quick_messages.all())

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def rate_order(self, order_id: Any, actor: Actor, dto: RateOrderDTO) -> Order:
        """Store the client's ratings and refresh business/courier averages.

        Raises:
            RatingNotAllowed: not delivered, not the caller's order, or a
                delivery rating for an order without courier.
            AlreadyRated: the order already carries a rating.
        """
        with transaction.atomic():
            order = self._order_repo.get_for_update(str(order_id))
            if order is None:
                raise OrderNotFound(f"Order {order_id} not found.")
            if order.client_id != actor.subject and not actor.is_admin:
                raise RatingNotAllowed("Only the client who placed the order can rate it.")
            if order.status != OrderStatus.DELIVERED:
                raise RatingNotAllowed("Only delivered orders can be rated.")
            if order.client_rating is not None or order.delivery_rating is not None:
                raise AlreadyRated(f"Order {order.id} has already been rated.")
            if dto.delivery_rating is not None and order.delivery_person_id is None:
                raise RatingNotAllowed("This order had no courier to rate.")

            previous = self._capture(order)
            order.client_rating = dto.business_rating
            order.delivery_rating = dto.delivery_rating
            order.add_domain_event(
                OrderRated(
                    aggregate_id=order.id,
                    business_rating=dto.business_rating,
                    delivery_rating=dto.delivery_rating,
                )
            )
            self._persist(order, previous)
            self._order_repo.create_rating(
                {
                    "order": order,
                    "client_id": order.client_id,
                    "business_id": order.business_id,
                    "delivery_person_id": order.delivery_person_id,
                    "business_rating": dto.business_rating,
                    "delivery_rating": dto.delivery_rating,
                    "comment": dto.comment,
                }
            )
            if dto.business_rating is not None:
                average = self._order_repo.average_business_rating(order.business_id)
                self._business_repo.update_rating(str(order.business_id), average or Decimal("0.0"))
            if dto.delivery_rating is not None:
                average = self._order_repo.average_courier_rating(order.delivery_person_id)
                self._courier_repo.update_rating(
                    str(order.delivery_person_id), average or Decimal("0.0")
                )
        logger.info("order.rated", order_id=str(order.id))
        return self._reload(order)

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def get_tracking(self, order_id: Any, actor: Actor) -> TrackingOutputDTO:
        order = self.get_order(order_id, actor)
        tracking = self._order_repo.get_tracking(str(order.id))
        position = target = distance = None
        arrived = active = False
        if tracking is not None:
            position = tracking.position.as_dict()
            target = tracking.target.as_dict()
            distance = round(haversine_distance_m(tracking.position, tracking.target), 1)
            arrived = tracking.arrived
            active = tracking.active
        return TrackingOutputDTO(
            order_id=order.id,
            status=order.status,
            position=position,
            target=target,
            distance_m=distance,
            arrived=arrived,
            active=active,
            estimated_delivery=estimate_delivery_time(order, order.business),
        )

    @transaction.atomic
    def advance_tracking(self, order_id: Any) -> bool:
        """Move the simulated courier one step.

        Returns ``True`` when another tick has been scheduled.  The simulation
        stops on arrival or as soon as the order is no longer delivering.
        """
        order = self._order_repo.get_for_update(str(order_id))
        tracking = self._order_repo.get_tracking_for_update(str(order_id))
        if order is None or tracking is None or not tracking.active:
            return False
        if order.status != OrderStatus.DELIVERING:
            tracking.active = False
            tracking.tick_task_id = ""
            self._order_repo.save_tracking(tracking)
            logger.info("tracking.stopped", order_id=str(order_id), status=order.status)
            return False

        interpolator = PositionInterpolator(
            tracking.position,
            tracking.target,
            step_ratio=settings.TRACKING_STEP_RATIO,
            arrival_radius_m=settings.TRACKING_ARRIVAL_RADIUS_M,
        )
        position = interpolator.tick()
        tracking.current_lat = position.lat
        tracking.current_lng = position.lng
        tracking.ticks += 1
        tracking.arrived = interpolator.arrived
        tracking.active = not interpolator.arrived
        tracking.tick_task_id = new_task_id() if tracking.active else ""
        self._order_repo.save_tracking(tracking)

        if tracking.active:
            transaction.on_commit(
                partial(schedule_tracking_tick, order.id, tracking.tick_task_id)
            )
        else:
            logger.info("tracking.arrived", order_id=str(order_id), ticks=tracking.ticks)
        return tracking.active

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: Any, actor: Actor) -> Order:
        """Retrieve an order visible to ``actor`` (after an expiry check).

        Raises:
            OrderNotFound: missing, or not visible to the caller.
        """
        self.expire_if_overdue(order_id)
        order = self._order_repo.get_by_id(str(order_id))
        if order is None or not self._can_view(
            actor,
            client_id=order.client_id,
            business_id=order.business_id,
            courier_id=order.delivery_person_id,
            status=order.status,
        ):
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def get_order_snapshot(self, order_id: Any, actor: Actor) -> Dict[str, Any]:
        """Cached order snapshot plus the live auto-cancel countdown."""
        self.expire_if_overdue(order_id)
        snapshot = order_cache.get_or_load(
            order_id, partial(build_order_snapshot, order_id, self._order_repo)
        )
        if snapshot is None or not self._can_view(
            actor,
            client_id=snapshot["client_id"],
            business_id=snapshot["business_id"],
            courier_id=snapshot["delivery_person_id"],
            status=snapshot["status"],
        ):
            raise OrderNotFound(f"Order {order_id} not found.")

        data = dict(snapshot)
        data["seconds_until_auto_cancel"] = None
        if data["status"] == OrderStatus.PENDING:
            created_at = datetime.fromisoformat(data["created_at"])
            elapsed = math.floor((timezone.now() - created_at).total_seconds())
            data["seconds_until_auto_cancel"] = max(
                settings.ORDER_AUTO_CANCEL_SECONDS - elapsed, 0
            )
        return data

    def list_orders(self, actor: Actor, status: Optional[str] = None) -> List[Order]:
        """Orders of the caller's role, newest first.

        Sweeps overdue pending orders first so the listing never shows a
        pending order past its deadline.
        """
        self.expire_overdue_orders()
        filters: Dict[str, Any] = {}
        if actor.role == Role.CLIENT:
            filters["client_id"] = actor.subject
        elif actor.role == Role.BUSINESS:
            business = self._business_repo.get_by_owner(actor.subject)
            if business is None:
                raise BusinessNotFound(f"No business registered for {actor.subject}.")
            filters["business_id"] = business.id
        elif actor.role == Role.COURIER:
            filters["delivery_person_id"] = self._courier_for(actor).id
        elif not actor.is_admin:
            return []
        if status:
            filters["status"] = status
        return self._order_repo.list(filters)

    def available_orders(self, actor: Actor) -> List[Order]:
        self._courier_for(actor)
        return self._order_repo.list_available()

    def active_deliveries(self, actor: Actor) -> List[Order]:
        courier = self._courier_for(actor)
        return self._order_repo.list(
            {"delivery_person_id": courier.id, "status": OrderStatus.DELIVERING}
        )

    def courier_history(self, actor: Actor) -> CourierHistoryDTO:
        """Delivered orders of the caller with earnings grouped per day."""
        courier = self._courier_for(actor)
        orders = self._order_repo.list_delivered_by_courier(courier.id)

        by_day: Dict[Any, Dict[str, Any]] = {}
        total = Decimal("0.00")
        for order in orders:
            commission = commission_for(order.total_price)
            total += commission
            day = timezone.localdate(order.delivered_at or order.created_at)
            bucket = by_day.setdefault(day, {"deliveries": 0, "earnings": Decimal("0.00")})
            bucket["deliveries"] += 1
            bucket["earnings"] += commission

        count = len(orders)
        average = (total / count).quantize(CENT, rounding=ROUND_HALF_UP) if count else Decimal("0.00")
        return CourierHistoryDTO(
            total_deliveries=count,
            total_earnings=total,
            average_earning=average,
            by_day=[
                DailyEarningsDTO(day=day, **values) for day, values in sorted(by_day.items())
            ],
            orders=[OrderOutputDTO.from_entity(order) for order in orders],
        )

    def global_stats(self) -> GlobalStatsDTO:
        counts = self._order_repo.count_by_status()
        return GlobalStatsDTO(
            orders_by_status=counts,
            total_orders=sum(counts.values()),
            delivered_revenue=self._order_repo.delivered_revenue(),
            online_couriers=self._courier_repo.count_online(),
            open_businesses=len(self._business_repo.list({"is_open": True})),
        )

    def business_stats(self, actor: Actor) -> BusinessStatsDTO:
        """Revenue, volume, rating and best sellers of the caller's business.

        The average order value spreads delivered revenue over every order
        the business received, cancelled ones included.
        """
        business = self._business_repo.get_by_owner(actor.subject)
        if business is None:
            raise BusinessNotFound(f"No business registered for {actor.subject}.")

        counts = self._order_repo.count_by_status(business.id)
        total_orders = sum(counts.values())
        revenue = self._order_repo.delivered_revenue(business.id)
        average = (
            (revenue / total_orders).quantize(CENT, rounding=ROUND_HALF_UP)
            if total_orders
            else Decimal("0.00")
        )
        return BusinessStatsDTO(
            business_id=business.id,
            total_orders=total_orders,
            delivered_revenue=revenue,
            average_order_value=average,
            rating=business.rating,
            orders_by_status=counts,
            top_products=[
                ProductSalesDTO(**row) for row in self._order_repo.top_products(business.id)
            ],
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    @transaction.atomic
    def archive_completed_orders(self) -> int:
        """Move every delivered or cancelled order into ``order_history``."""
        archived = 0
        for order in self._order_repo.list_terminal():
            order_id = order.id
            self._order_repo.archive(order)
            transaction.on_commit(partial(order_cache.invalidate, order_id))
            archived += 1
        logger.info("order.archive_completed", archived=archived)
        return archived

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _courier_for(self, actor: Actor) -> DeliveryPerson:
        courier = self._courier_repo.get_by_user(actor.subject)
        if courier is None:
            raise CourierNotFound(f"No courier profile for {actor.subject}.")
        return courier

    def _lock_business_order(self, order_id: Any, actor: Actor) -> Order:
        """Lock an order the calling business owns (admins may act on any)."""
        order = self._order_repo.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found.")
        if not actor.is_admin and order.business.owner_id != actor.subject:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _can_view(
        self,
        actor: Actor,
        *,
        client_id: str,
        business_id: Any,
        courier_id: Any,
        status: str,
    ) -> bool:
        if actor.is_admin or client_id == actor.subject:
            return True
        if actor.role == Role.BUSINESS:
            business = self._business_repo.get_by_owner(actor.subject)
            return business is not None and str(business.id) == str(business_id)
        if actor.role == Role.COURIER:
            courier = self._courier_repo.get_by_user(actor.subject)
            if courier is None:
                return False
            if courier_id is None:
                return status == OrderStatus.READY
            return str(courier.id) == str(courier_id)
        return False

    def _cancel(
        self,
        order: Order,
        actor: Actor,
        *,
        notes: str,
        automatic: bool = False,
    ) -> None:
        task_id = order.auto_cancel_task_id

        def mutate() -> None:
            order.auto_cancel_task_id = ""

        self._transition(
            order,
            OrderStatus.CANCELLED,
            actor_id=actor.subject,
            notes=notes,
            mutate=mutate,
            event_class=OrderCancelled,
            event_kwargs={"automatic": automatic},
        )
        if task_id and not automatic:
            transaction.on_commit(partial(revoke_task, task_id))

    def _transition(
        self,
        order: Order,
        new_status: str,
        *,
        actor_id: str = "",
        notes: str = "",
        mutate=None,
        event_class=OrderStatusChanged,
        event_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Apply a checked transition: mutate, persist, record history."""
        previous = self._capture(order)
        old_status = order.status
        order.status = new_status
        if mutate is not None:
            mutate()
        order.add_domain_event(
            event_class(
                aggregate_id=order.id,
                old_status=old_status,
                new_status=new_status,
                **(event_kwargs or {}),
            )
        )
        self._persist(order, previous)
        self._order_repo.add_history(
            order_id=order.id,
            old_status=old_status,
            new_status=new_status,
            notes=notes,
            actor_id=actor_id,
        )

    def _persist(self, order: Order, previous: Dict[str, Any]) -> None:
        try:
            self._order_repo.save(order)
        except PersistenceFailure:
            for field, value in previous.items():
                setattr(order, field, value)
            order.clear_domain_events()
            logger.error("order.persistence_failed", order_id=str(order.id))
            raise

    @staticmethod
    def _capture(order: Order) -> Dict[str, Any]:
        return {field: getattr(order, field) for field in RESTORABLE_FIELDS}

    def _start_tracking(self, order: Order, courier: DeliveryPerson) -> None:
        origin = courier.current_location or order.business.location
        target = order.delivery_location
        if origin is None or target is None:
            logger.warning("tracking.unavailable", order_id=str(order.id))
            return
        interpolator = PositionInterpolator(
            origin,
            target,
            step_ratio=settings.TRACKING_STEP_RATIO,
            arrival_radius_m=settings.TRACKING_ARRIVAL_RADIUS_M,
        )
        tracking = self._order_repo.get_tracking_for_update(str(order.id)) or DeliveryTracking(
            order=order
        )
        tracking.current_lat = interpolator.position.lat
        tracking.current_lng = interpolator.position.lng
        tracking.target_lat = target.lat
        tracking.target_lng = target.lng
        tracking.arrived = interpolator.arrived
        tracking.active = not interpolator.arrived
        tracking.ticks = 0
        tracking.tick_task_id = new_task_id() if tracking.active else ""
        self._order_repo.save_tracking(tracking)
        if tracking.active:
            transaction.on_commit(
                partial(schedule_tracking_tick, order.id, tracking.tick_task_id)
            )
        logger.info("tracking.started", order_id=str(order.id), arrived=tracking.arrived)

    def _stop_tracking(self, order: Order) -> None:
        tracking = self._order_repo.get_tracking_for_update(str(order.id))
        if tracking is None:
            return
        task_id = tracking.tick_task_id
        tracking.active = False
        tracking.tick_task_id = ""
        self._order_repo.save_tracking(tracking)
        if task_id:
            transaction.on_commit(partial(revoke_task, task_id))

    def _reload(self, order: Order) -> Order:
        return self._order_repo.get_by_id(str(order.id)) or order
