import json

import pytest

from chatthreads import config, server

MINUTE = 60 * 1000


@pytest.fixture
def store(tmp_path, monkeypatch, make_message):
    path = tmp_path / "messages.json"
    path.write_text(
        json.dumps(
            [
                make_message("user", "What is a thread?", 0, id="u1"),
                make_message("assistant", "A group of related turns.", MINUTE, id="a1", threadId="T"),
                make_message("user", "Second topic", 90 * MINUTE, id="u2"),
            ]
        )
    )
    monkeypatch.setattr(config, "STORE_PATH", path)
    return path


def test_missing_store(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "STORE_PATH", tmp_path / "missing.json")
    assert "No stored messages found" in server.list_threads()
    assert "No stored messages found" in server.get_stats()


def test_list_threads(store):
    output = server.list_threads()
    assert "Threads (showing 2)" in output
    assert "ID: `T`" in output
    assert output.index("Second topic") < output.index("What is a thread?")


def test_list_threads_keyword(store):
    output = server.list_threads(keyword="related")
    assert "ID: `T`" in output
    assert "Second topic" not in output
    assert "No threads found matching 'zzz'" in server.list_threads(keyword="zzz")


def test_list_threads_merges_current_messages(store, make_message):
    current = json.dumps([make_message("assistant", "Fresh answer", 91 * MINUTE, id="a2")])
    output = server.list_threads(current_messages=current)
    assert "Threads (showing 2)" in output


def test_bad_current_messages_json(store):
    assert "not valid JSON" in server.list_threads(current_messages="[oops")


def test_get_thread(store):
    output = server.get_thread("T")
    assert "# Thread T" in output
    assert "**User**:\nWhat is a thread?" in output
    assert "**Assistant**:\nA group of related turns." in output


def test_get_thread_not_found(store):
    assert server.get_thread("missing") == "Thread not found: missing"


def test_get_thread_truncates(store, monkeypatch):
    monkeypatch.setattr(config, "MAX_TRANSCRIPT_CHARS", 10)
    output = server.get_thread("T")
    assert "Truncated" in output


def test_get_chat_history(store):
    history = json.loads(server.get_chat_history(thread_id="T"))
    assert history == [
        {"role": "user", "content": "What is a thread?"},
        {"role": "assistant", "content": "A group of related turns."},
    ]
    assert len(json.loads(server.get_chat_history())) == 3


def test_get_stats(store):
    output = server.get_stats()
    assert "**Messages**: 3" in output
    assert "**Threads**: 2" in output
