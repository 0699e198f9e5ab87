from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class LiveChatConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "connectlocal.livechat"
    verbose_name = _("Live Chat")
