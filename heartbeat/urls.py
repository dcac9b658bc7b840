"""
URL configuration for the heartbeat app.
"""
from django.urls import path

from . import views

app_name = "heartbeat"

urlpatterns = [
    path("ping/<str:key>", views.ping, name="ping"),
]
