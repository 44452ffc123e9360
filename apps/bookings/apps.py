from django.apps import AppConfig


class BookingsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.bookings"
    label = "bookings"

    def ready(self) -> None:  # pragma: no cover - import side effects
        from .application.bootstrap import register_handlers

        register_handlers()
