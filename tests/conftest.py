import pytest

MINUTE_MS = 60 * 1000


@pytest.fixture
def make_message():
    """Build a raw message dict the way the chat front end sends them."""

    def _make(role, content, timestamp, **extra):
        record = {"role": role, "content": content, "timestamp": timestamp}
        record.update(extra)
        return record

    return _make


@pytest.fixture
def stored_pair(make_message):
    return [
        make_message("user", "Hi", 1000),
        make_message("assistant", "Hello", 1005),
    ]
