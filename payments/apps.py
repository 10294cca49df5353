from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    name = "payments"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        # Provider clients and verifiers are configured once per process and
        # handed to the views; nothing looks them up from module globals.
        from .verification import build_clients, build_verifiers

        self.clients = build_clients()
        self.verifiers = build_verifiers(self.clients)
