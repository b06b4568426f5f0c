from django.apps import AppConfig


class PortalConfig(AppConfig):
    name = "portal"
    verbose_name = "TAWA Training Portal"

    def ready(self):
        # registers the system checks
        import portal.checks  # noqa: F401
