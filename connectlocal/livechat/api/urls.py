from django.urls import include
from django.urls import path
from rest_framework.routers import SimpleRouter

from connectlocal.livechat.api.views import LiveChatSessionViewSet
from connectlocal.livechat.api.views import StartLiveChatView
from connectlocal.livechat.api.views import UserLiveChatSessionsView

app_name = "livechat"

router = SimpleRouter()
router.register("sessions", LiveChatSessionViewSet, basename="session")

urlpatterns = [
    path("start/", StartLiveChatView.as_view(), name="start"),
    path("user-sessions/", UserLiveChatSessionsView.as_view(), name="user-sessions"),
    path("", include(router.urls)),
]
