"""Courier API views: the caller's own profile, availability and position."""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import PersistenceFailure
from modules.core.permissions import IsCourier
from modules.core.roles import get_subject
from modules.couriers.dtos import RegisterCourierDTO, SetOnlineDTO, UpdateLocationDTO
from modules.couriers.exceptions import CourierAlreadyRegistered, CourierNotFound
from modules.couriers.models import DeliveryPerson
from modules.couriers.repositories.django_repository import CourierDjangoRepository
from modules.couriers.serializers import CourierSerializer
from modules.couriers.services import CourierService

NOT_FOUND = {"detail": "Courier profile not found."}


class CourierViewSet(GenericViewSet):
    queryset = DeliveryPerson.objects.alive()
    serializer_class = CourierSerializer
    permission_classes = [IsCourier]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = CourierService(repository=CourierDjangoRepository())

    def create(self, request: Request) -> Response:
        """POST /api/v1/couriers/"""
        data = request.data
        try:
            dto = RegisterCourierDTO(
                name=data.get("name", ""),
                phone=data.get("phone", ""),
                vehicle_type=data.get("vehicle_type", "moto"),
            )
            courier = self._service.register_courier(get_subject(request.user), dto)
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except CourierAlreadyRegistered as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        return Response(CourierSerializer(courier).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"])
    def me(self, request: Request) -> Response:
        """GET /api/v1/couriers/me/"""
        try:
            courier = self._service.get_profile(get_subject(request.user))
        except CourierNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(CourierSerializer(courier).data)

    @action(detail=False, methods=["patch"], url_path="me/status")
    def set_status(self, request: Request) -> Response:
        """PATCH /api/v1/couriers/me/status/ with ``{"is_online": bool}``"""
        if "is_online" not in request.data:
            return Response(
                {"detail": "Field 'is_online' is required."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            dto = SetOnlineDTO(
                is_online=request.data.get("is_online"),
                location=request.data.get("location"),
            )
            courier = self._service.set_online(get_subject(request.user), dto)
        except PydanticValidationError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except CourierNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        except PersistenceFailure:
            return Response(
                {"detail": "Could not update the courier."},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return Response(CourierSerializer(courier).data)

    @action(detail=False, methods=["patch"], url_path="me/location")
    def location(self, request: Request) -> Response:
        """PATCH /api/v1/couriers/me/location/ with ``{"lat": .., "lng": ..}``"""
        try:
            dto = UpdateLocationDTO(
                lat=request.data.get("lat"),
                lng=request.data.get("lng"),
            )
            courier = self._service.update_location(get_subject(request.user), dto)
        except (PydanticValidationError, ValueError) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except CourierNotFound:
            return Response(NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(CourierSerializer(courier).data)
