"""Business API views.

Exposes ``BusinessService`` over HTTP.  Domain exceptions are translated into
status codes here; unexpected exceptions propagate to DRF.
"""

from __future__ import annotations

from typing import Any, Dict

import structlog
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.businesses.dtos import (
    BrowseQueryDTO,
    BusinessProfileDTO,
    CreateProductDTO,
    UpdateProductDTO,
)
from modules.businesses.exceptions import (
    BusinessAlreadyRegistered,
    BusinessNotFound,
    ProductNotFound,
    PromotionNotFound,
    UploadFailed,
    UploadTooLarge,
)
from modules.businesses.filters import ProductFilter
from modules.businesses.models import Business, Product
from modules.businesses.repositories.django_repository import BusinessDjangoRepository
from modules.businesses.serializers import (
    BrowseEntrySerializer,
    BusinessDetailSerializer,
    BusinessSerializer,
    ProductSerializer,
)
from modules.businesses.services import BusinessService
from modules.core.exceptions import LocationUnavailable, PersistenceFailure
from modules.core.permissions import IsBusinessOwner
from modules.core.roles import get_subject

logger = structlog.get_logger(__name__)

BROWSE_PARAMS = (
    "category",
    "is_open",
    "search",
    "min_avg_price",
    "max_avg_price",
    "lat",
    "lng",
    "max_distance_km",
)


def _detail(message: str, http_status: int) -> Response:
    return Response({"detail": message}, status=http_status)


def _validation_error(exc: Exception) -> Response:
    return _detail(str(exc), status.HTTP_400_BAD_REQUEST)


def _profile_dto(data: Dict[str, Any]) -> BusinessProfileDTO:
    fields = {key: data.get(key) for key in BusinessProfileDTO.model_fields}
    return BusinessProfileDTO(**fields)


class BusinessViewSet(GenericViewSet):
    """Public browsing plus owner-only profile and promotion management."""

    queryset = Business.objects.alive()
    serializer_class = BusinessSerializer
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = BusinessService(repository=BusinessDjangoRepository())

    def get_permissions(self):
        if self.action in ("list", "retrieve", "products"):
            return [AllowAny()]
        return [IsBusinessOwner()]

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/businesses/"""
        params = {
            key: request.query_params.get(key)
            for key in BROWSE_PARAMS
            if request.query_params.get(key) not in (None, "")
        }
        try:
            query = BrowseQueryDTO(**params)
        except PydanticValidationError as exc:
            return _validation_error(exc)

        try:
            result = self._service.browse(query)
        except LocationUnavailable as exc:
            logger.warning("business.browse_location_unavailable", reason=str(exc))
            result = self._service.browse(query.model_copy(update={"lat": None, "lng": None}))
            distance_filter = "unavailable"
        else:
            distance_filter = result.distance_filter

        return Response(
            {
                "count": len(result.entries),
                "distance_filter": distance_filter,
                "results": BrowseEntrySerializer(result.entries, many=True).data,
            }
        )

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/businesses/{pk}/"""
        try:
            business = self._service.get_business(pk)
            products = self._service.list_menu(pk, available_only=True)
        except BusinessNotFound:
            return _detail("Business not found.", status.HTTP_404_NOT_FOUND)
        serializer = BusinessDetailSerializer(business, context={"products": products})
        return Response(serializer.data)

    @action(detail=True, methods=["get"])
    def products(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/businesses/{pk}/products/"""
        try:
            products = self._service.list_menu(pk, available_only=True)
        except BusinessNotFound:
            return _detail("Business not found.", status.HTTP_404_NOT_FOUND)
        return Response(ProductSerializer(products, many=True).data)

    # ------------------------------------------------------------------
    # Owner
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/businesses/ registers the caller's business."""
        try:
            dto = _profile_dto(request.data)
            business = self._service.register_business(get_subject(request.user), dto)
        except (PydanticValidationError, ValueError) as exc:
            return _validation_error(exc)
        except BusinessAlreadyRegistered as exc:
            return _detail(str(exc), status.HTTP_409_CONFLICT)
        except PersistenceFailure:
            return _detail("Could not save the business.", status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(BusinessSerializer(business).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get", "patch"])
    def mine(self, request: Request) -> Response:
        """GET/PATCH /api/v1/businesses/mine/"""
        owner_id = get_subject(request.user)
        if request.method == "GET":
            try:
                business = self._service.get_owned_business(owner_id)
            except BusinessNotFound:
                return _detail("Business not found.", status.HTTP_404_NOT_FOUND)
            return Response(BusinessSerializer(business).data)

        try:
            dto = _profile_dto(request.data)
            business = self._service.update_profile(owner_id, dto)
        except (PydanticValidationError, ValueError) as exc:
            return _validation_error(exc)
        except BusinessNotFound:
            return _detail("Business not found.", status.HTTP_404_NOT_FOUND)
        except PersistenceFailure:
            return _detail("Could not save the business.", status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(BusinessSerializer(business).data)

    @action(detail=False, methods=["post", "delete"], url_path="mine/promotions")
    def promotions(self, request: Request) -> Response:
        """POST (multipart ``file``) / DELETE (``path``) /api/v1/businesses/mine/promotions/"""
        owner_id = get_subject(request.user)
        if request.method == "DELETE":
            path = request.data.get("path") or request.query_params.get("path")
            if not path:
                return _detail("Field 'path' is required.", status.HTTP_400_BAD_REQUEST)
            try:
                self._service.remove_promotion(owner_id, path)
            except BusinessNotFound:
                return _detail("Business not found.", status.HTTP_404_NOT_FOUND)
            except PromotionNotFound as exc:
                return _detail(str(exc), status.HTTP_404_NOT_FOUND)
            except UploadFailed as exc:
                return _detail(str(exc), status.HTTP_502_BAD_GATEWAY)
            return Response(status=status.HTTP_204_NO_CONTENT)

        upload = request.FILES.get("file")
        if upload is None:
            return _detail("Field 'file' is required.", status.HTTP_400_BAD_REQUEST)
        try:
            descriptor = self._service.add_promotion(owner_id, upload)
        except BusinessNotFound:
            return _detail("Business not found.", status.HTTP_404_NOT_FOUND)
        except UploadTooLarge as exc:
            return _detail(str(exc), status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)
        except UploadFailed as exc:
            return _detail(str(exc), status.HTTP_502_BAD_GATEWAY)
        return Response(descriptor, status=status.HTTP_201_CREATED)


class MenuProductViewSet(GenericViewSet):
    """Menu management for the caller's own business."""

    queryset = Product.objects.alive()
    serializer_class = ProductSerializer
    permission_classes = [IsBusinessOwner]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = BusinessService(repository=BusinessDjangoRepository())

    def list(self, request: Request) -> Response:
        """GET /api/v1/products/"""
        try:
            business = self._service.get_owned_business(get_subject(request.user))
        except BusinessNotFound:
            return _detail("Business not found.", status.HTTP_404_NOT_FOUND)
        filterset = ProductFilter(
            request.query_params,
            queryset=Product.objects.alive().filter(business=business),
        )
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(ProductSerializer(filterset.qs, many=True).data)

    def create(self, request: Request) -> Response:
        """POST /api/v1/products/"""
        data = request.data
        try:
            dto = CreateProductDTO(
                name=data.get("name", ""),
                price=data.get("price", 0),
                description=data.get("description", ""),
                category=data.get("category", ""),
                is_available=data.get("is_available", True),
            )
            product = self._service.create_product(get_subject(request.user), dto)
        except (PydanticValidationError, ValueError) as exc:
            return _validation_error(exc)
        except BusinessNotFound:
            return _detail("Business not found.", status.HTTP_404_NOT_FOUND)
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/products/{pk}/"""
        data = request.data
        try:
            dto = UpdateProductDTO(
                name=data.get("name"),
                price=data.get("price"),
                description=data.get("description"),
                category=data.get("category"),
                is_available=data.get("is_available"),
            )
            product = self._service.update_product(get_subject(request.user), pk, dto)
        except (PydanticValidationError, ValueError) as exc:
            return _validation_error(exc)
        except (BusinessNotFound, ProductNotFound):
            return _detail("Product not found.", status.HTTP_404_NOT_FOUND)
        return Response(ProductSerializer(product).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        return self.partial_update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/products/{pk}/"""
        try:
            self._service.delete_product(get_subject(request.user), pk)
        except (BusinessNotFound, ProductNotFound):
            return _detail("Product not found.", status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)
