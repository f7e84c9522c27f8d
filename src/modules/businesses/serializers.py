"""Business DRF serializers (output only; input goes through DTOs)."""

from __future__ import annotations

from rest_framework import serializers

from modules.businesses.models import Business, Product


class ProductSerializer(serializers.ModelSerializer):
    business_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "business_id",
            "name",
            "description",
            "category",
            "price",
            "is_available",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BusinessSerializer(serializers.ModelSerializer):
    location = serializers.SerializerMethodField()

    class Meta:
        model = Business
        fields = [
            "id",
            "owner_id",
            "name",
            "category",
            "description",
            "phone",
            "address",
            "location",
            "delivery_time",
            "delivery_fee",
            "is_open",
            "rating",
            "promotions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_location(self, obj: Business):
        location = obj.location
        return location.as_dict() if location else None


class BusinessDetailSerializer(BusinessSerializer):
    """Business with its currently orderable products."""

    products = serializers.SerializerMethodField()

    class Meta(BusinessSerializer.Meta):
        fields = BusinessSerializer.Meta.fields + ["products"]
        read_only_fields = fields

    def get_products(self, obj: Business):
        products = self.context.get("products")
        if products is None:
            products = obj.products.alive().filter(is_available=True)
        return ProductSerializer(products, many=True).data


class BrowseEntrySerializer(serializers.Serializer):
    """Flattens a ``BrowseEntry`` into the business payload plus browse data."""

    def to_representation(self, entry):
        data = BusinessSerializer(entry.business).data
        data["distance_km"] = (
            round(entry.distance_km, 2) if entry.distance_km is not None else None
        )
        data["estimated_delivery"] = entry.estimated_delivery
        return data
