"""Live-support REST endpoints.

Realtime side effects are published once the request transaction commits.
"""

import math
from functools import partial

from django.db import transaction
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from connectlocal.core.api.responses import success_response
from connectlocal.livechat import services
from connectlocal.realtime.events.livechat import publish_live_chat_message
from connectlocal.realtime.events.livechat import publish_new_session
from connectlocal.realtime.events.livechat import publish_session_cancelled
from connectlocal.realtime.events.livechat import publish_session_claimed
from connectlocal.realtime.events.livechat import publish_session_ended
from connectlocal.users.api.permissions import IsPlatformAdmin

from .serializers import LiveChatMessageSerializer
from .serializers import LiveChatSessionSerializer
from .serializers import SessionListQuerySerializer

ADMIN_ACTIONS = {"list", "available", "destroy", "join", "cancel"}


def _paginate(queryset, page: int, limit: int) -> dict:
    total = queryset.count()
    offset = (page - 1) * limit
    return {
        "sessions": LiveChatSessionSerializer(
            queryset[offset : offset + limit], many=True
        ).data,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if total else 0,
        },
    }


class StartLiveChatView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Live Chat"], request=None)
    def post(self, request):
        session = services.start_session(request.user)
        transaction.on_commit(partial(publish_new_session, session))
        return success_response(
            LiveChatSessionSerializer(session).data,
            "Live chat session started successfully",
            status.HTTP_201_CREATED,
        )


class UserLiveChatSessionsView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Live Chat"], parameters=[SessionListQuerySerializer])
    def get(self, request):
        query = SessionListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        qs = services.user_sessions(request.user, query.validated_data.get("status"))
        return success_response(
            _paginate(qs, query.validated_data["page"], query.validated_data["limit"])
        )


class LiveChatSessionViewSet(GenericViewSet):
    serializer_class = LiveChatSessionSerializer
    lookup_value_regex = "[0-9a-fA-F-]{32,36}"

    def get_permissions(self):
        if self.action in ADMIN_ACTIONS:
            return [IsAuthenticated(), IsPlatformAdmin()]
        return [IsAuthenticated()]

    @extend_schema(tags=["Live Chat"], parameters=[SessionListQuerySerializer])
    def list(self, request):
        query = SessionListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        qs = services.list_sessions(query.validated_data.get("status"))
        return success_response(
            _paginate(qs, query.validated_data["page"], query.validated_data["limit"])
        )

    @extend_schema(tags=["Live Chat"])
    def retrieve(self, request, pk=None):
        session = services.get_session_for(pk, request.user)
        return success_response(LiveChatSessionSerializer(session).data)

    @extend_schema(tags=["Live Chat"], responses={200: None})
    def destroy(self, request, pk=None):
        services.delete_session(pk, request.user)
        return success_response(message="Chat session deleted successfully")

    @extend_schema(tags=["Live Chat"])
    @action(detail=False, methods=["get"])
    def available(self, request):
        sessions = services.available_sessions()
        return success_response(LiveChatSessionSerializer(sessions, many=True).data)

    @extend_schema(tags=["Live Chat"], request=None)
    @action(detail=True, methods=["put", "post"])
    def join(self, request, pk=None):
        result = services.claim_session(pk, request.user)
        if result.newly_claimed:
            transaction.on_commit(
                partial(publish_session_claimed, result.session, request.user)
            )
        return success_response(
            LiveChatSessionSerializer(result.session).data,
            "Successfully joined chat session",
        )

    @extend_schema(tags=["Live Chat"])
    @action(detail=True, methods=["put", "post"])
    def end(self, request, pk=None):
        notes = request.data.get("notes")
        session = services.end_session(pk, request.user, notes)
        transaction.on_commit(
            partial(publish_session_ended, session, request.user, notes)
        )
        return success_response(
            LiveChatSessionSerializer(session).data,
            "Chat session ended successfully",
        )

    @extend_schema(tags=["Live Chat"])
    @action(detail=True, methods=["put", "post"])
    def cancel(self, request, pk=None):
        session = services.cancel_session(pk, request.user, request.data.get("notes"))
        transaction.on_commit(
            partial(publish_session_cancelled, session, request.user)
        )
        return success_response(
            LiveChatSessionSerializer(session).data,
            "Chat session cancelled successfully",
        )

    @extend_schema(tags=["Live Chat"])
    @action(detail=True, methods=["get", "post"])
    def messages(self, request, pk=None):
        if request.method == "POST":
            message = services.post_message(
                pk, request.user, request.data.get("message")
            )
            transaction.on_commit(
                partial(publish_live_chat_message, message, request.user)
            )
            return success_response(
                LiveChatMessageSerializer(message).data,
                "Message sent successfully",
                status.HTTP_201_CREATED,
            )
        messages = services.session_messages(pk, request.user)
        return success_response(LiveChatMessageSerializer(messages, many=True).data)
