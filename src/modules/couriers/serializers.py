from __future__ import annotations

from rest_framework import serializers

from modules.couriers.models import DeliveryPerson


class CourierSerializer(serializers.ModelSerializer):
    current_location = serializers.SerializerMethodField()

    class Meta:
        model = DeliveryPerson
        fields = [
            "id",
            "user_id",
            "name",
            "phone",
            "vehicle_type",
            "is_online",
            "current_location",
            "earnings",
            "total_deliveries",
            "rating",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_current_location(self, obj: DeliveryPerson):
        location = obj.current_location
        return location.as_dict() if location else None
