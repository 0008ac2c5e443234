from django.apps import AppConfig


class MocktestsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'mocktests'
    verbose_name = 'Mock tests'
