"""Business URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.businesses.views import BusinessViewSet, MenuProductViewSet

router = DefaultRouter(trailing_slash=True)
router.register("businesses", BusinessViewSet, basename="business")
router.register("products", MenuProductViewSet, basename="product")

urlpatterns = router.urls
