from django.urls import include, path
from rest_framework.routers import DefaultRouter

from api.views import LiturgyMassTypeView, LiturgyRoleView, MassViewSet

router = DefaultRouter()
router.register("masses", MassViewSet, basename="mass")

urlpatterns = [
    path("auth/", include("accounts.urls")),
    path("liturgy/roles/", LiturgyRoleView.as_view(), name="liturgy-roles"),
    path("liturgy/mass-types/", LiturgyMassTypeView.as_view(), name="liturgy-mass-types"),
    path("", include(router.urls)),
]
