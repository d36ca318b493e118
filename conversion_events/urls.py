from django.urls import path

from . import views


urlpatterns = [
    path("api/events/", views.track_event, name="track_event"),
    path("api/track/", views.track_browser_event, name="track_browser_event"),
    path("api/checkout/", views.checkout, name="checkout"),
    path("api/purchase/complete/", views.complete_purchase, name="complete_purchase"),
    path("healthz/", views.health_check, name="health_check"),
]
