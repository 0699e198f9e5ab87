import pytest

from connectlocal.chats.content import ContentKind
from connectlocal.chats.content import parse_content


def test_plain_string_becomes_text_body():
    parsed = parse_content("hello")
    assert parsed.kind is ContentKind.TEXT
    assert parsed.as_json() == {"text": "hello"}
    assert parsed.preview("text") == "hello"


@pytest.mark.parametrize(
    ("message_type", "kind"),
    [
        ("image", ContentKind.MEDIA),
        ("file", ContentKind.MEDIA),
        ("location", ContentKind.LOCATION),
        ("contact", ContentKind.CONTACT),
        ("text", ContentKind.TEXT),
    ],
)
def test_mapping_is_passed_through_and_tagged(message_type, kind):
    parsed = parse_content({"url": "https://cdn/x"}, message_type)
    assert parsed.kind is kind
    assert parsed.as_json() == {"url": "https://cdn/x"}


@pytest.mark.parametrize("raw", [None, 42, ["a"], 1.5])
def test_anything_else_is_empty_text(raw):
    assert parse_content(raw).as_json() == {"text": ""}


def test_preview_falls_back_to_message_type():
    assert parse_content({"lat": 1, "lng": 2}, "location").preview("location") == "[location]"
