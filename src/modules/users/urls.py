from django.urls import path

from modules.users.views import DriverListView

urlpatterns = [
    path("drivers/", DriverListView.as_view(), name="driver-list"),
]
