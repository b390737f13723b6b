"""Tests for InMemoryHistoryStore."""

import pytest

from tia_bot.history.store import InMemoryHistoryStore


def test_add_and_get_messages():
    store = InMemoryHistoryStore(max_entries=10)
    store.add_turn("user", "alice: hi")
    store.add_turn("assistant", "hello alice")

    assert store.get_messages() == [
        {"role": "user", "content": "alice: hi"},
        {"role": "assistant", "content": "hello alice"},
    ]


def test_oldest_entries_evicted_first():
    store = InMemoryHistoryStore(max_entries=3)
    for i in range(5):
        store.add_turn("user", f"msg {i}")

    assert len(store) == 3
    assert [e["content"] for e in store.get_messages()] == ["msg 2", "msg 3", "msg 4"]


def test_returned_messages_are_copies():
    store = InMemoryHistoryStore()
    store.add_turn("user", "original")
    store.get_messages()[0]["content"] = "mutated"
    assert store.get_messages()[0]["content"] == "original"


def test_invalid_capacity():
    with pytest.raises(ValueError):
        InMemoryHistoryStore(max_entries=0)
