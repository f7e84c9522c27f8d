"""Django ORM implementation of the Courier repository."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.db.models import F

from modules.core.exceptions import PersistenceFailure
from modules.couriers.models import DeliveryPerson
from modules.couriers.repositories.interfaces import ICourierRepository

logger = structlog.get_logger(__name__)


class CourierDjangoRepository(ICourierRepository):
    """Concrete Courier repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[DeliveryPerson]:
        try:
            return DeliveryPerson.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_user(self, user_id: str) -> Optional[DeliveryPerson]:
        return DeliveryPerson.objects.alive().filter(user_id=user_id).first()

    def get_for_update(self, id: str) -> Optional[DeliveryPerson]:
        try:
            return DeliveryPerson.objects.select_for_update().alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[DeliveryPerson]:
        queryset = DeliveryPerson.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: DeliveryPerson) -> DeliveryPerson:
        try:
            entity.save()
        except DatabaseError as exc:
            logger.error("courier.save_failed", courier_id=str(entity.id), error=str(exc))
            raise PersistenceFailure(str(exc)) from exc
        logger.info("courier.saved", courier_id=str(entity.id), is_online=entity.is_online)
        return entity

    @transaction.atomic
    def delete(self, id: str) -> bool:
        courier = self.get_by_id(id)
        if not courier:
            return False
        courier.delete()
        logger.info("courier.soft_deleted", courier_id=str(id))
        return True

    def credit_delivery(self, id: str, commission: Decimal) -> None:
        DeliveryPerson.objects.filter(id=id).update(
            earnings=F("earnings") + commission,
            total_deliveries=F("total_deliveries") + 1,
        )
        logger.info("courier.credited", courier_id=str(id), commission=str(commission))

    def update_rating(self, id: str, rating: Decimal) -> None:
        DeliveryPerson.objects.filter(id=id).update(rating=rating)

    def count_online(self) -> int:
        return DeliveryPerson.objects.alive().filter(is_online=True).count()
