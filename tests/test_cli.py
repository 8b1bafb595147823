import json

import pytest
from click.testing import CliRunner

from chatthreads import __version__
from chatthreads.cli import cli

MINUTE = 60 * 1000


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def stored_file(tmp_path, make_message):
    path = tmp_path / "stored.json"
    path.write_text(
        json.dumps(
            {
                "messages": [
                    make_message("user", "How do I rotate keys?", 0, id="u1"),
                    make_message(
                        "assistant",
                        "Use the admin console.",
                        MINUTE,
                        id="a1",
                        resources=[{"url": "https://docs/keys", "title": "Keys"}],
                    ),
                    make_message("user", "Unrelated later question", 120 * MINUTE, id="u2"),
                ]
            }
        )
    )
    return path


@pytest.fixture
def current_file(tmp_path, make_message):
    path = tmp_path / "current.json"
    path.write_text(json.dumps([make_message("assistant", "Later answer", 121 * MINUTE, id="a2")]))
    return path


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_threads_text_output(runner, stored_file, current_file):
    result = runner.invoke(cli, ["threads", str(stored_file), "--current", str(current_file)])
    assert result.exit_code == 0, result.output
    assert "Unrelated later question" in result.output
    assert "current, stored" in result.output
    assert "Resources: 1" in result.output
    assert result.output.index("Unrelated later question") < result.output.index("How do I rotate keys?")


def test_threads_json_output(runner, stored_file, current_file):
    result = runner.invoke(
        cli, ["threads", str(stored_file), "--current", str(current_file), "--json"]
    )
    assert result.exit_code == 0, result.output
    threads = json.loads(result.output)
    assert len(threads) == 2
    assert threads[0]["userContent"] == "Unrelated later question"
    assert threads[0]["aiContent"] == "Later answer"
    assert threads[0]["isCurrent"] is True


def test_threads_limit_and_keyword(runner, stored_file):
    result = runner.invoke(cli, ["threads", str(stored_file), "--json", "--limit", "1"])
    assert len(json.loads(result.output)) == 1

    result = runner.invoke(cli, ["threads", str(stored_file), "--json", "--keyword", "rotate"])
    (thread,) = json.loads(result.output)
    assert thread["userContent"] == "How do I rotate keys?"
    assert thread["aiContent"] == "Use the admin console."


def test_keyword_keeps_unfiltered_thread_ids(runner, tmp_path):
    path = tmp_path / "hintless.json"
    path.write_text(
        json.dumps(
            [
                {"role": "user", "content": "first question", "timestamp": 0},
                {"role": "assistant", "content": "first answer", "timestamp": MINUTE},
                {"role": "user", "content": "follow up about rotate", "timestamp": 2 * MINUTE},
                {"role": "assistant", "content": "rotate monthly", "timestamp": 3 * MINUTE},
            ]
        )
    )
    unfiltered = json.loads(runner.invoke(cli, ["threads", str(path), "--json"]).output)
    result = runner.invoke(cli, ["threads", str(path), "--json", "--keyword", "rotate"])
    assert result.exit_code == 0, result.output
    filtered = json.loads(result.output)

    assert filtered
    assert {t["id"] for t in filtered} <= {t["id"] for t in unfiltered}
    assert filtered[0]["aiContent"] == "rotate monthly"

    history = runner.invoke(cli, ["history", str(path), "--thread", filtered[0]["id"]])
    assert history.exit_code == 0, history.output
    assert len(json.loads(history.output)) == 4


def test_threads_gap_option(runner, stored_file):
    result = runner.invoke(cli, ["threads", str(stored_file), "--json", "--gap-minutes", "500"])
    (thread,) = json.loads(result.output)
    assert thread["conversationCount"] == 2


def test_merge_to_file(runner, stored_file, tmp_path):
    out = tmp_path / "merged.json"
    result = runner.invoke(cli, ["merge", str(stored_file), "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert "Wrote 3 messages" in result.output
    merged = json.loads(out.read_text())
    assert all(m["threadId"] for m in merged)
    assert merged[0]["isStored"] is True


def test_snapshot(runner, stored_file):
    result = runner.invoke(cli, ["snapshot", str(stored_file)])
    assert result.exit_code == 0, result.output
    snapshots = json.loads(result.output)
    assert {s["messageCount"] for s in snapshots} == {1, 2}


def test_history_for_thread(runner, stored_file):
    merged = json.loads(runner.invoke(cli, ["merge", str(stored_file)]).output)
    thread_id = merged[0]["threadId"]

    result = runner.invoke(cli, ["history", str(stored_file), "--thread", thread_id])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == [
        {"role": "user", "content": "How do I rotate keys?"},
        {"role": "assistant", "content": "Use the admin console."},
    ]


def test_history_unknown_thread(runner, stored_file):
    result = runner.invoke(cli, ["history", str(stored_file), "--thread", "nope"])
    assert result.exit_code != 0
    assert "Thread not found" in result.output


def test_stats(runner, stored_file, current_file):
    result = runner.invoke(cli, ["stats", str(stored_file), "--current", str(current_file)])
    assert result.exit_code == 0, result.output
    assert "Messages:       4" in result.output
    assert "Threads:        2" in result.output


def test_stats_gap_option(runner, stored_file, current_file):
    result = runner.invoke(
        cli, ["stats", str(stored_file), "--current", str(current_file), "--gap-minutes", "500"]
    )
    assert result.exit_code == 0, result.output
    assert "Threads:        1" in result.output


def test_invalid_json_is_reported(runner, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    result = runner.invoke(cli, ["threads", str(bad)])
    assert result.exit_code != 0
    assert "not valid JSON" in result.output


def test_empty_store(runner, tmp_path):
    empty = tmp_path / "empty.json"
    empty.write_text("[]")
    result = runner.invoke(cli, ["threads", str(empty)])
    assert result.exit_code == 0
    assert "No threads found." in result.output
