import pytest

from chatgate.core.errors import NotFoundError
from chatgate.features.chats.service import (
    TITLE_MAX_LENGTH,
    create_chat,
    delete_chat,
    get_chat,
    list_messages,
    save_message,
    title_from_message,
    update_chat_model,
)


def test_title_uses_first_line_and_truncates():
    assert title_from_message("hello there\nsecond line") == "hello there"
    assert title_from_message("   ") == "New chat"
    long_title = title_from_message("x" * 200)
    assert len(long_title) == TITLE_MAX_LENGTH
    assert long_title.endswith("...")


def test_create_and_fetch_chat(make_user):
    make_user("owner-1")
    created = create_chat("chat-1", "owner-1", "First", "chat-model")

    fetched = get_chat("chat-1")
    assert fetched.user_id == "owner-1"
    assert fetched.model == "chat-model"
    assert created.id == fetched.id
    assert get_chat("missing") is None


def test_messages_listed_in_insert_order(make_user):
    make_user("owner-1")
    create_chat("chat-1", "owner-1", "First", "chat-model")
    save_message("chat-1", "user", "one")
    save_message("chat-1", "user", "two")

    assert [m.content for m in list_messages("chat-1")] == ["one", "two"]


def test_update_chat_model(make_user):
    make_user("owner-1")
    create_chat("chat-1", "owner-1", "First", "chat-model")

    assert update_chat_model("chat-1", "gpt-4").model == "gpt-4"
    with pytest.raises(NotFoundError):
        update_chat_model("missing", "gpt-4")


def test_delete_chat_removes_messages(make_user):
    make_user("owner-1")
    create_chat("chat-1", "owner-1", "First", "chat-model")
    save_message("chat-1", "user", "bye")

    delete_chat("chat-1")

    assert get_chat("chat-1") is None
    assert list_messages("chat-1") == []
    with pytest.raises(NotFoundError):
        delete_chat("chat-1")


def test_create_chat_keeps_first_owner(make_user):
    make_user("owner-1")
    make_user("owner-2")
    create_chat("chat-1", "owner-1", "First", "chat-model")

    again = create_chat("chat-1", "owner-2", "Second", "gpt-4")

    assert again.user_id == "owner-1"
    assert again.title == "First"
