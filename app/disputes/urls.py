"""URL configuration for the disputes app, mounted at /api/v1/disputes/."""

from rest_framework.routers import SimpleRouter

from disputes.views import DisputeViewSet

app_name = "disputes"

router = SimpleRouter()
router.register(r"", DisputeViewSet, basename="dispute")

urlpatterns = router.urls
