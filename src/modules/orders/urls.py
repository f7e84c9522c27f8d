"""Order URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.orders.views import BusinessStatsView, CourierHistoryView, OrderViewSet

router = DefaultRouter(trailing_slash=True)
router.register("orders", OrderViewSet, basename="order")

urlpatterns = [
    path("couriers/me/history/", CourierHistoryView.as_view(), name="courier-history"),
    path("businesses/mine/stats/", BusinessStatsView.as_view(), name="business-stats"),
    *router.urls,
]
