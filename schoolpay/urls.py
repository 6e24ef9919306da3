from django.contrib import admin
from django.urls import include, path

from . import views

handler404 = "schoolpay.views.error_404_view"
handler500 = "schoolpay.views.error_500_view"

urlpatterns = [
    path("", views.api_index, name="index"),
    path("admin/", admin.site.urls),
    path("django-rq/", include("django_rq.urls")),
    path("api/", views.api_index, name="api_index"),
    path("api/auth/", include("accounts.urls")),
    path("api/", include("payments.urls")),
]
