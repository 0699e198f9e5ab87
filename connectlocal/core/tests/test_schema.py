import pytest
from drf_spectacular.generators import SchemaGenerator

from config.schema import assign_group_tag


@pytest.mark.parametrize(
    ("path", "tag"),
    [
        ("/api/v1/auth/jwt/create/", "Authentication"),
        ("/api/v1/chats/{id}/messages/", "Chats"),
        ("/api/v1/messages/{id}/reaction/", "Messages"),
        ("/api/v1/livechat/sessions/available/", "Live Chat"),
        ("/api/v1/notifications/mark-all-read/", "Notifications"),
        ("/api/v1/users/me/", "Users"),
        ("/health/", None),
    ],
)
def test_assign_group_tag(path, tag):
    assert assign_group_tag(path) == tag


def test_schema_tag_grouping(db):
    schema = SchemaGenerator().get_schema(request=None, public=True)
    paths = schema["paths"]
    expected = {
        "/api/v1/auth/jwt/create/": ["Authentication"],
        "/api/v1/chats/": ["Chats"],
        "/api/v1/livechat/start/": ["Live Chat"],
        "/api/v1/notifications/": ["Notifications"],
        "/api/v1/users/": ["Users"],
    }
    for path, tags in expected.items():
        first_op = next(iter(paths[path].values()))
        assert first_op["tags"] == tags
    names = {t["name"] for t in schema["tags"]}
    assert {"Chats", "Live Chat", "Messages"} <= names
