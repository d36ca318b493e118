from django.urls import include, path

urlpatterns = [
    path("", include("conversion_events.urls")),
]
