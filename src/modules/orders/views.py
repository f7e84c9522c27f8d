"""Order API views.

Exposes ``OrderService`` over HTTP.  Domain exceptions are translated into
status codes through ``ERROR_STATUS``; anything else propagates to DRF.
"""

from __future__ import annotations

from typing import Any, Dict

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.businesses.exceptions import (
    BusinessClosed,
    BusinessNotFound,
    ProductNotFound,
    ProductUnavailable,
)
from modules.businesses.repositories.django_repository import BusinessDjangoRepository
from modules.core.exceptions import PersistenceFailure
from modules.core.pagination import StandardResultsSetPagination
from modules.core.permissions import IsAdmin, IsBusinessOwner, IsClient, IsCourier
from modules.core.roles import Actor
from modules.couriers.exceptions import CourierNotFound, CourierOffline
from modules.couriers.repositories.django_repository import CourierDjangoRepository
from modules.orders.dtos import (
    CheckoutItemDTO,
    CreateOrderDTO,
    DeliveryAddressDTO,
    OrderOutputDTO,
    QuickMessageDTO,
    RateOrderDTO,
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
from modules.orders.filters import ArchivedOrderFilter
from modules.orders.messaging import build_checkout_link
from modules.orders.models import ArchivedOrder, Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    ArchivedOrderSerializer,
    CreateOrderSerializer,
    OrderListQuerySerializer,
    PreparationTimeSerializer,
    QuickMessageSerializer,
    RateOrderSerializer,
)
from modules.orders.services import OrderService

ERROR_STATUS: Dict[type, int] = {
    OrderNotFound: status.HTTP_404_NOT_FOUND,
    InvalidTransition: status.HTTP_400_BAD_REQUEST,
    TerminalState: status.HTTP_409_CONFLICT,
    AlreadyAssigned: status.HTTP_409_CONFLICT,
    NotReady: status.HTTP_409_CONFLICT,
    AlreadyRated: status.HTTP_409_CONFLICT,
    RatingNotAllowed: status.HTTP_400_BAD_REQUEST,
    PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
    BusinessNotFound: status.HTTP_404_NOT_FOUND,
    ProductNotFound: status.HTTP_404_NOT_FOUND,
    BusinessClosed: status.HTTP_400_BAD_REQUEST,
    ProductUnavailable: status.HTTP_400_BAD_REQUEST,
    CourierNotFound: status.HTTP_404_NOT_FOUND,
    CourierOffline: status.HTTP_400_BAD_REQUEST,
}
DOMAIN_ERRORS = tuple(ERROR_STATUS)


def error_response(exc: Exception) -> Response:
    return Response({"detail": str(exc)}, status=ERROR_STATUS[type(exc)])


def build_service() -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        business_repository=BusinessDjangoRepository(),
        courier_repository=CourierDjangoRepository(),
    )


def order_payload(order: Order) -> Dict[str, Any]:
    return OrderOutputDTO.from_entity(order).model_dump(mode="json")


class OrderViewSet(GenericViewSet):
    """Order lifecycle endpoints for every role.

    Does **not** extend ``ModelViewSet``: all ORM access goes through the
    service/repository layer.
    """

    queryset = Order.objects.alive()
    permission_classes = [IsAuthenticated]
    pagination_class = StandardResultsSetPagination

    BUSINESS_ACTIONS = {"accept", "reject", "preparation_time", "start_preparing", "ready", "cancel"}
    COURIER_ACTIONS = {"claim", "deliver", "available", "active"}

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_service()

    def get_permissions(self):
        if self.action in ("create", "rate"):
            return [IsClient()]
        if self.action in self.BUSINESS_ACTIONS:
            return [IsBusinessOwner()]
        if self.action in self.COURIER_ACTIONS:
            return [IsCourier()]
        if self.action in ("archive", "stats", "history"):
            return [IsAdmin()]
        return super().get_permissions()

    def get_throttles(self) -> list[BaseThrottle]:
        if self.action == "create":
            self.throttle_scope = "order_creation"
        elif self.action == "tracking":
            self.throttle_scope = "order_tracking"
        else:
            self.throttle_scope = None
        return super().get_throttles()

    def _actor(self, request: Request) -> Actor:
        return Actor.from_user(request.user)

    # ------------------------------------------------------------------
    # Client
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Returns the order plus a prefilled chat link for the business.
        """
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)
        data = create_serializer.validated_data

        try:
            dto = CreateOrderDTO(
                business_id=data["business_id"],
                items=[
                    CheckoutItemDTO(product_id=item["product_id"], quantity=item["quantity"])
                    for item in data["items"]
                ],
                delivery_address=DeliveryAddressDTO(**data["delivery_address"]),
                special_notes=data.get("special_notes", ""),
            )
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            order = self._service.create_order(self._actor(request).subject, dto)
        except DOMAIN_ERRORS as exc:
            return error_response(exc)

        payload = order_payload(order)
        payload["checkout_link"] = build_checkout_link(order)
        return Response(payload, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def rate(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/rate/"""
        serializer = RateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            dto = RateOrderDTO(**serializer.validated_data)
        except PydanticValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        try:
            order = self._service.rate_order(pk, self._actor(request), dto)
        except DOMAIN_ERRORS as exc:
            return error_response(exc)
        return Response(order_payload(order))

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/?status=<status>

        Scoped to the caller's role: own orders for clients, the business's
        orders for owners, assigned orders for couriers, everything for admins.
        """
        query = OrderListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        try:
            orders = self._service.list_orders(
                self._actor(request), status=query.validated_data.get("status")
            )
        except DOMAIN_ERRORS as exc:
            return error_response(exc)

        page = self.paginate_queryset(orders)
        return self.get_paginated_response([order_payload(order) for order in page])

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            snapshot = self._service.get_order_snapshot(pk, self._actor(request))
        except DOMAIN_ERRORS as exc:
            return error_response(exc)
        return Response(snapshot)

    @action(detail=True, methods=["get"])
    def tracking(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/tracking/"""
        try:
            snapshot = self._service.get_tracking(pk, self._actor(request))
        except DOMAIN_ERRORS as exc:
            return error_response(exc)
        return Response(snapshot.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Business
    # ------------------------------------------------------------------

    def _run(self, command, request: Request, pk: str | None, *args) -> Response:
        try:
            order = command(pk, self._actor(request), *args)
        except DOMAIN_ERRORS as exc:
            return error_response(exc)
        return Response(order_payload(order))

    @action(detail=True, methods=["post"])
    def accept(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/accept/"""
        return self._run(self._service.accept_order, request, pk)

    @action(detail=True, methods=["post"])
    def reject(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/reject/"""
        return self._run(self._service.reject_order, request, pk)

    @action(detail=True, methods=["post"], url_path="preparation-time")
    def preparation_time(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/preparation-time/ with ``{"preparation_time": N}``"""
        serializer = PreparationTimeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        minutes = serializer.validated_data["preparation_time"]
        try:
            return self._run(self._service.set_preparation_time, request, pk, minutes)
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

    @action(detail=True, methods=["post"], url_path="start-preparing")
    def start_preparing(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/start-preparing/"""
        return self._run(self._service.start_preparing, request, pk)

    @action(detail=True, methods=["post"])
    def ready(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/ready/"""
        return self._run(self._service.mark_ready, request, pk)

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/"""
        return self._run(self._service.cancel_order, request, pk, request.data.get("notes", ""))

    # ------------------------------------------------------------------
    # Courier
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def available(self, request: Request) -> Response:
        """GET /api/v1/orders/available/"""
        try:
            orders = self._service.available_orders(self._actor(request))
        except DOMAIN_ERRORS as exc:
            return error_response(exc)
        return Response([order_payload(order) for order in orders])

    @action(detail=False, methods=["get"])
    def active(self, request: Request) -> Response:
        """GET /api/v1/orders/active/"""
        try:
            orders = self._service.active_deliveries(self._actor(request))
        except DOMAIN_ERRORS as exc:
            return error_response(exc)
        return Response([order_payload(order) for order in orders])

    @action(detail=True, methods=["post"])
    def claim(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/claim/"""
        return self._run(self._service.accept_for_delivery, request, pk)

    @action(detail=True, methods=["post"])
    def deliver(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/deliver/"""
        return self._run(self._service.mark_delivered, request, pk)

    @action(detail=True, methods=["get", "post"])
    def messages(self, request: Request, pk: str | None = None) -> Response:
        """GET/POST /api/v1/orders/{pk}/messages/"""
        actor = self._actor(request)
        if request.method == "GET":
            try:
                messages = self._service.list_quick_messages(pk, actor)
            except DOMAIN_ERRORS as exc:
                return error_response(exc)
            return Response(QuickMessageSerializer(messages, many=True).data)

        try:
            dto = QuickMessageDTO(message=request.data.get("message", ""))
        except PydanticValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        try:
            message = self._service.send_quick_message(pk, actor, dto)
        except DOMAIN_ERRORS as exc:
            return error_response(exc)
        return Response(QuickMessageSerializer(message).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"])
    def archive(self, request: Request) -> Response:
        """POST /api/v1/orders/archive/"""
        archived = self._service.archive_completed_orders()
        return Response({"archived": archived})

    @action(detail=False, methods=["get"])
    def stats(self, request: Request) -> Response:
        """GET /api/v1/orders/stats/"""
        return Response(self._service.global_stats().model_dump(mode="json"))

    @action(detail=False, methods=["get"])
    def history(self, request: Request) -> Response:
        """GET /api/v1/orders/history/ (archived orders)"""
        filterset = ArchivedOrderFilter(request.query_params, queryset=ArchivedOrder.objects.all())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        page = self.paginate_queryset(filterset.qs)
        return self.get_paginated_response(ArchivedOrderSerializer(page, many=True).data)


class CourierHistoryView(APIView):
    """GET /api/v1/couriers/me/history/: deliveries and earnings per day."""

    permission_classes = [IsCourier]

    def get(self, request: Request) -> Response:
        try:
            history = build_service().courier_history(Actor.from_user(request.user))
        except DOMAIN_ERRORS as exc:
            return error_response(exc)
        return Response(history.model_dump(mode="json"))


class BusinessStatsView(APIView):
    """GET /api/v1/businesses/mine/stats/"""

    permission_classes = [IsBusinessOwner]

    def get(self, request: Request) -> Response:
        try:
            stats = build_service().business_stats(Actor.from_user(request.user))
        except DOMAIN_ERRORS as exc:
            return error_response(exc)
        return Response(stats.model_dump(mode="json"))
