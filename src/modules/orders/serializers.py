"""Order DRF serializers.

Input serializers validate request payloads before they become Pydantic DTOs
(``dtos.py``); output of orders goes through ``OrderOutputDTO``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import OrderStatus
from modules.orders.models import ArchivedOrder, QuickMessage

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CheckoutItemSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class DeliveryAddressSerializer(serializers.Serializer):
    full_address = serializers.CharField(required=False, default="", allow_blank=True)
    lat = serializers.FloatField(required=False, allow_null=True, default=None)
    lng = serializers.FloatField(required=False, allow_null=True, default=None)


class CreateOrderSerializer(serializers.Serializer):
    """Checkout payload: the client's cart for one business."""

    business_id = serializers.UUIDField()
    items = CheckoutItemSerializer(many=True, allow_empty=False)
    delivery_address = DeliveryAddressSerializer()
    special_notes = serializers.CharField(required=False, default="", allow_blank=True)


class PreparationTimeSerializer(serializers.Serializer):
    preparation_time = serializers.IntegerField(min_value=1)


class RateOrderSerializer(serializers.Serializer):
    business_rating = serializers.IntegerField(
        min_value=1, max_value=5, required=False, allow_null=True, default=None
    )
    delivery_rating = serializers.IntegerField(
        min_value=1, max_value=5, required=False, allow_null=True, default=None
    )
    comment = serializers.CharField(required=False, default="", allow_blank=True)


class OrderListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)


# ---------------------------------------------------------------------------
# Output Serializers
# ---------------------------------------------------------------------------


class QuickMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuickMessage
        fields = ["id", "order_id", "sender_id", "message", "created_at"]
        read_only_fields = fields


class ArchivedOrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = ArchivedOrder
        fields = [
            "id",
            "order_id",
            "business_id",
            "business_name",
            "client_id",
            "delivery_person_id",
            "status",
            "total_price",
            "items",
            "order_created_at",
            "created_at",
        ]
        read_only_fields = fields
