from __future__ import annotations

import dataclasses

import pytest

from chat_turn.transcript import Message, Role, Transcript


def test_empty_transcript():
    t = Transcript()
    assert len(t) == 0
    assert t.messages == ()
    assert t.evicted == 0


def test_append_preserves_order():
    t = Transcript()
    t.append(Message(Role.USER, "a"))
    t.append(Message(Role.ASSISTANT, "b"))
    assert [m.content for m in t] == ["a", "b"]
    assert t.to_dicts() == [
        {"role": "user", "content": "a"},
        {"role": "assistant", "content": "b"},
    ]


def test_messages_are_immutable():
    m = Message(Role.USER, "a")
    with pytest.raises(dataclasses.FrozenInstanceError):
        m.content = "b"  # type: ignore[misc]


def test_drop_keeps_anchor_and_full_history():
    t = Transcript()
    for c in "abcd":
        t.append(Message(Role.USER, c))

    dropped = t.drop_oldest_unpinned()
    assert dropped.content == "b"
    assert [m.content for m in t] == ["a", "c", "d"]
    assert t.evicted == 1
    # the log itself is append-only
    assert [m.content for m in t.history] == ["a", "b", "c", "d"]

    t.append(Message(Role.ASSISTANT, "e"))
    assert [m.content for m in t] == ["a", "c", "d", "e"]


def test_drop_refuses_to_shrink_below_two():
    t = Transcript()
    t.append(Message(Role.USER, "a"))
    t.append(Message(Role.ASSISTANT, "b"))
    with pytest.raises(ValueError):
        t.drop_oldest_unpinned()
    assert len(t) == 2
