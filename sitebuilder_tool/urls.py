"""Project URL configuration: the admin plus the sitebuilder endpoints."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('sitebuilder.urls')),
]
