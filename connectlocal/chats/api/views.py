from functools import partial

from django.db import transaction
from drf_spectacular.utils import OpenApiParameter
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from connectlocal.chats import services
from connectlocal.chats.services import ChatAlreadyExists
from connectlocal.core.api.responses import success_response
from connectlocal.core.exceptions import InvalidState
from connectlocal.realtime.events.chats import publish_message_deleted
from connectlocal.realtime.events.chats import publish_message_edited
from connectlocal.realtime.events.chats import publish_message_reaction
from connectlocal.realtime.events.chats import publish_messages_read
from connectlocal.realtime.events.chats import publish_new_message

from .serializers import ChatCreateSerializer
from .serializers import ChatSerializer
from .serializers import ChatUpdateSerializer
from .serializers import EditMessageSerializer
from .serializers import HistoryQuerySerializer
from .serializers import MessageSerializer
from .serializers import ReactionSerializer
from .serializers import SendMessageSerializer

UUID_LOOKUP = "[0-9a-fA-F-]{32,36}"


class ChatViewSet(GenericViewSet):
    """Chats the authenticated user takes part in.

    Broadcasts go out after the request transaction commits.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = ChatSerializer
    lookup_value_regex = UUID_LOOKUP

    def get_queryset(self):
        return services.list_chats(self.request.user)

    @extend_schema(tags=["Chats"])
    def list(self, request):
        return success_response(ChatSerializer(self.get_queryset(), many=True).data)

    @extend_schema(tags=["Chats"], request=ChatCreateSerializer)
    def create(self, request):
        serializer = ChatCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            chat = services.create_chat(
                request.user,
                serializer.validated_data["participants"],
                serializer.validated_data["type"],
                serializer.validated_data["name"],
            )
        except ChatAlreadyExists as exc:
            return Response(
                {"success": False, "message": exc.message, "chatId": str(exc.chat_id)},
                status=exc.status_code,
            )
        return success_response(
            ChatSerializer(chat).data,
            "Chat created successfully",
            status.HTTP_201_CREATED,
        )

    @extend_schema(tags=["Chats"])
    def retrieve(self, request, pk=None):
        chat = services.get_chat_for_participant(pk, request.user)
        return success_response(ChatSerializer(chat).data)

    @extend_schema(tags=["Chats"], request=ChatUpdateSerializer)
    def partial_update(self, request, pk=None):
        serializer = ChatUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        chat = services.update_chat(
            pk,
            request.user,
            name=serializer.validated_data.get("name"),
            add_participants=serializer.validated_data["add_participants"],
            remove_participants=serializer.validated_data["remove_participants"],
        )
        return success_response(ChatSerializer(chat).data, "Chat updated successfully")

    @extend_schema(tags=["Chats"], request=ChatUpdateSerializer)
    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    @extend_schema(tags=["Chats"], responses={200: None})
    def destroy(self, request, pk=None):
        deleted = services.leave_chat(pk, request.user)
        return success_response(message="Chat deleted" if deleted else "Left chat")

    @extend_schema(
        tags=["Chats"],
        parameters=[
            OpenApiParameter("limit", int, required=False),
            OpenApiParameter("before", str, required=False),
        ],
    )
    @action(detail=True, methods=["get", "post"])
    def messages(self, request, pk=None):
        if request.method == "POST":
            return self._send(request, pk)
        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        messages = services.history(
            pk,
            request.user,
            limit=query.validated_data["limit"],
            before=query.validated_data["before"],
        )
        return success_response(MessageSerializer(messages, many=True).data)

    def _send(self, request, pk):
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        sent = services.send_message(
            pk,
            request.user,
            data["content"],
            data["type"],
            media=data["media"],
            location=data["location"],
            reply_to_id=data["reply_to_id"],
        )
        transaction.on_commit(partial(publish_new_message, sent))
        return success_response(
            MessageSerializer(sent.message).data,
            "Message sent successfully",
            status.HTTP_201_CREATED,
        )

    @extend_schema(tags=["Chats"])
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        message_ids = request.data.get("message_ids")
        if not isinstance(message_ids, list):
            msg = "message_ids must be a list"
            raise InvalidState(msg)
        read_ids = services.mark_messages_read(pk, request.user, message_ids)
        transaction.on_commit(
            partial(publish_messages_read, pk, request.user.pk, read_ids)
        )
        return success_response({"message_ids": read_ids})


class MessageViewSet(GenericViewSet):
    """Management of single messages: edit, react, delete, edit history."""

    permission_classes = [IsAuthenticated]
    serializer_class = MessageSerializer
    lookup_value_regex = UUID_LOOKUP

    @extend_schema(tags=["Messages"], request=EditMessageSerializer)
    def partial_update(self, request, pk=None):
        serializer = EditMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = services.edit_message(
            pk, request.user, serializer.validated_data["content"]
        )
        transaction.on_commit(partial(publish_message_edited, message))
        return success_response(
            MessageSerializer(message).data, "Message updated successfully"
        )

    @extend_schema(tags=["Messages"], request=EditMessageSerializer)
    def update(self, request, pk=None):
        return self.partial_update(request, pk=pk)

    @extend_schema(tags=["Messages"], responses={200: None})
    def destroy(self, request, pk=None):
        message = services.delete_message(pk, request.user)
        transaction.on_commit(partial(publish_message_deleted, message))
        return success_response(message="Message deleted successfully")

    @extend_schema(tags=["Messages"], request=ReactionSerializer)
    @action(detail=True, methods=["post"])
    def reaction(self, request, pk=None):
        serializer = ReactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = services.react_to_message(
            pk, request.user, serializer.validated_data.get("reaction")
        )
        transaction.on_commit(partial(publish_message_reaction, message))
        return success_response({"reactions": message.reactions})

    @extend_schema(tags=["Messages"])
    @action(detail=True, methods=["get"], url_path="edit-history")
    def edit_history(self, request, pk=None):
        return success_response(services.edit_history(pk, request.user))
