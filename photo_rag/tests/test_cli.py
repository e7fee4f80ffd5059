"""Tests for the CLI entry point, wired to the in-memory store."""

from __future__ import annotations

import signal

import pytest
from PIL import Image

from photo_rag.context import AppContext
from photo_rag.ingest import cli


@pytest.fixture
def run(ctx, monkeypatch):
    monkeypatch.setattr(AppContext, "from_settings", lambda settings: ctx)
    monkeypatch.setattr(cli, "_install_shutdown_handlers", lambda: None)
    return cli.main


def test_upload_prints_report(run, backend, tmp_path, capsys):
    for name in ("a", "b"):
        Image.new("RGB", (4, 4)).save(tmp_path / f"{name}.png")

    run(["upload", str(tmp_path), "--batch-size", "1"])

    out = capsys.readouterr().out
    assert "Successfully uploaded: 2 images" in out
    assert len(backend.points) == 2


def test_search_prints_results(run, ctx, make_record, capsys):
    ctx.pipeline.ingest([make_record("eiffel")], batch_size=1, skip_existing=False)

    run(["search", "tower", "--location", "Paris", "--radius-km", "5"])

    out = capsys.readouterr().out
    assert 'Found 1 results for "tower":' in out
    assert "1. eiffel.jpg" in out
    assert "similarity 90.0%" in out


def test_search_without_query_exits(run):
    with pytest.raises(SystemExit) as excinfo:
        run(["search"])
    assert excinfo.value.code == 1


def test_failure_exits_non_zero(run, backend, log_messages):
    backend.create_error = RuntimeError("schema rejected")
    with pytest.raises(SystemExit) as excinfo:
        run(["create-collection"])
    assert excinfo.value.code == 1
    assert any("create-collection" in m for m in log_messages)


def test_delete_missing_collection(run, capsys):
    run(["delete-collection"])
    assert "does not exist" in capsys.readouterr().out


def test_missing_subcommand_is_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2


@pytest.fixture
def restore_signal_handlers():
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)


@pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
def test_signal_unwinds_and_closes_connection(ctx, backend, monkeypatch, restore_signal_handlers, signum):
    monkeypatch.setattr(AppContext, "from_settings", lambda settings: ctx)

    def interrupted_listing(limit):
        ctx.connections.get_client()
        signal.raise_signal(signum)
        raise AssertionError("signal handler did not interrupt the command")

    monkeypatch.setattr(ctx.queries, "list_all", interrupted_listing)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["list"])

    assert excinfo.value.code == 0
    assert backend.stores[0].closed
    assert ctx.connections.built_at is None
