from django.conf import settings
from django.urls import include
from django.urls import path
from rest_framework.routers import DefaultRouter
from rest_framework.routers import SimpleRouter

from connectlocal.chats.api.views import ChatViewSet
from connectlocal.chats.api.views import MessageViewSet
from connectlocal.notifications.api.views import NotificationViewSet
from connectlocal.users.api.views import UserViewSet

router = DefaultRouter() if settings.DEBUG else SimpleRouter()

router.register("users", UserViewSet)
router.register("chats", ChatViewSet, basename="chats")
router.register("messages", MessageViewSet, basename="messages")
router.register("notifications", NotificationViewSet, basename="notifications")


app_name = "api"
urlpatterns = [
    path("livechat/", include("connectlocal.livechat.api.urls")),
    *router.urls,
]
