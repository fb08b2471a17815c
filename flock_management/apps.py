from django.apps import AppConfig


class FlockManagementConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "flock_management"
