from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class StampmanConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "stampman"
    verbose_name = _("Stampman - Programa de Fidelidade")
