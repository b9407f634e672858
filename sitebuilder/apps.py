from django.apps import AppConfig


class SitebuilderConfig(AppConfig):
    """Configuration for the sitebuilder Django app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'sitebuilder'
