from chatthreads.history import (
    build_chat_history,
    filter_recent,
    find_by_keywords,
    message_stats,
    search_messages,
    split_by_provenance,
)
from chatthreads.merge import merge_messages
from chatthreads.pairing import pair_messages

DAY = 24 * 60 * 60 * 1000


class TestBuildChatHistory:
    def test_keeps_user_and_assistant_turns(self, make_message):
        history = build_chat_history(
            [
                make_message("system", "rules", 0),
                make_message("user", "  question  ", 1),
                {"type": "ai", "content": ["part", "two"], "timestamp": 2},
            ]
        )
        assert [(t.role, t.content) for t in history] == [
            ("user", "question"),
            ("assistant", "part two"),
        ]

    def test_drops_resource_and_local_only_messages(self, make_message):
        history = build_chat_history(
            [
                make_message("assistant", "resource card", 1, isResource=True),
                make_message("assistant", "notes", 2, isStudyNotes=True),
                make_message("user", "draft", 3, isLocalOnly=True),
                make_message("user", "kept", 4),
            ]
        )
        assert [t.content for t in history] == ["kept"]

    def test_drops_empty_and_malformed(self):
        assert build_chat_history([{"role": "user", "content": "  "}, None, "x"]) == []
        assert build_chat_history(None) == []

    def test_accepts_merged_messages(self, stored_pair):
        history = build_chat_history(merge_messages([], stored_pair))
        assert [t.model_dump() for t in history] == [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
        ]


def test_filter_recent(make_message):
    now = 100 * DAY
    recent = filter_recent(
        [
            make_message("user", "old", now - 40 * DAY),
            make_message("user", "new", now - DAY),
            make_message("user", "undated", None),
        ],
        days=30,
        now=now,
    )
    assert [m.content for m in recent] == ["new"]


def test_search_messages(make_message):
    msgs = [make_message("user", "Deploy the API", 1), make_message("assistant", "Sure", 2)]
    assert [m.content for m in search_messages(msgs, "deploy")] == ["Deploy the API"]
    assert len(search_messages(msgs, "  ")) == 2


def test_message_stats(make_message):
    merged = merge_messages(
        [make_message("user", "q2", 90 * 60 * 1000)],
        [
            make_message("user", "q1", 0),
            make_message("assistant", "a1", 1000, resources=[{"url": "u"}]),
        ],
    )
    stats = message_stats(merged)
    assert stats["total_messages"] == 3
    assert stats["user_messages"] == 2
    assert stats["assistant_messages"] == 1
    assert stats["with_resources"] == 1
    assert stats["conversations"] == 2
    assert stats["threads"] == 2
    assert stats["current_session"] == 1
    assert stats["stored"] == 2
    assert stats["oldest_message"] == "1970-01-01T00:00:00+00:00"
    assert stats["average_content_length"] == 2


def test_message_stats_empty():
    stats = message_stats([])
    assert stats["total_messages"] == 0
    assert stats["oldest_message"] is None
    assert stats["average_content_length"] == 0


def test_message_stats_uses_gap_threshold(make_message):
    msgs = [make_message("user", "q1", 0), make_message("user", "q2", 60 * 60 * 1000)]
    assert message_stats(msgs)["threads"] == 2
    assert message_stats(msgs, gap_threshold=2 * 60 * 60 * 1000)["threads"] == 1


def test_find_by_keywords(make_message):
    msgs = [
        make_message("user", "Deploy the API", 1),
        make_message("assistant", "Rotate the keys", 2),
        make_message("user", "Unrelated", 3),
    ]
    found = find_by_keywords(msgs, ["deploy", "ROTATE"])
    assert [m.content for m in found] == ["Deploy the API", "Rotate the keys"]
    assert find_by_keywords(msgs, []) == []
    assert find_by_keywords(msgs, None) == []


def test_split_by_provenance(stored_pair, make_message):
    cards = pair_messages(merge_messages([make_message("user", "live", 2000)], stored_pair))
    current, stored = split_by_provenance(cards)
    assert [c.user_content for c in current] == ["live"]
    assert [c.user_content for c in stored] == ["Hi"]
