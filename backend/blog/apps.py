"""
Blog App Configuration
"""
from django.apps import AppConfig


class BlogConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'blog'

    def ready(self):
        # Registers the counter hooks with store.hooks
        from . import counters  # noqa: F401
