from django.urls import path

from modules.appsettings.views import AppSettingsView

urlpatterns = [
    path("settings/", AppSettingsView.as_view(), name="app-settings"),
]
