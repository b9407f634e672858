"""URL configuration for the sitebuilder app."""

from django.urls import path

from . import views

app_name = 'sitebuilder'

urlpatterns = [
    path('select/', views.select_components, name='select'),
    path('builds/', views.builds, name='builds'),
    path('webhooks/github/', views.github_webhook, name='github_webhook'),
]
