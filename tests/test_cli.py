"""Tests for CLI commands.

These tests verify command registration, argument handling and exit codes.
Network-facing services are replaced with mocks.
"""

import json
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from clarity_sync.runner.main import (
    build_staging,
    create_cli,
    main,
    parse_month,
    resolve_window,
)
from clarity_sync.schemas import SyncComparison, SyncWindow
from clarity_sync.services import SyncError, SyncResult, SyncStatus
from clarity_sync.staging import SqliteSessionStorage, SyncStagingStore

CONFIG = """
filemaker:
  base_url: "https://fm.test"
  token: "t"
supabase:
  url: "https://abc.supabase.test"
  api_key: "k"
sync:
  organization_id: "org-1"
  staging_backend: "sqlite"
state_db_path: "{db}"
"""


@pytest.fixture
def config_path(tmp_path, temp_db, monkeypatch):
    for name in ("FILEMAKER_URL", "SUPABASE_URL", "SUPABASE_KEY", "CLARITY_ORGANIZATION_ID",
                 "CLARITY_STAGING_BACKEND"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG.format(db=temp_db))
    return path


@pytest.fixture
def service():
    with patch("clarity_sync.runner.main.build_service") as build:
        yield build.return_value


class TestCLICommandRegistry:
    """Tests for CLI command registration."""

    def test_all_commands_registered(self):
        parser = create_cli()
        for command in ("sync", "status", "pending", "check", "init-config"):
            assert parser.parse_args([command]).command == command
        args = parser.parse_args(["backfill", "--from", "2024-01", "--to", "2024-03"])
        assert args.command == "backfill"
        assert args.from_month == "2024-01"
        assert args.to_month == "2024-03"

    def test_sync_options(self):
        args = create_cli().parse_args(
            ["--org", "o", "sync", "--start", "2024-03-01", "--end", "2024-03-31",
             "--dry-run", "--delete-orphaned", "--pending-only"]
        )
        assert args.org == "o"
        assert args.start == "2024-03-01"
        assert args.dry_run is True
        assert args.delete_orphaned is True
        assert args.pending_only is True

    def test_sync_defaults(self):
        args = create_cli().parse_args(["sync"])
        assert args.dry_run is False
        assert args.delete_orphaned is False
        assert args.pending_only is False


class TestHelpers:
    """Window and month parsing."""

    def test_parse_month(self):
        assert parse_month("2024-02") == date(2024, 2, 1)
        with pytest.raises(ValueError):
            parse_month("Feb 2024")

    def test_resolve_window_explicit(self):
        window = resolve_window("org-1", "2024-03-01", "2024-03-15")
        assert window == SyncWindow("org-1", date(2024, 3, 1), date(2024, 3, 15))

    def test_resolve_window_defaults_to_current_month(self):
        window = resolve_window("org-1", None, None)
        assert window.start_date.day == 1
        assert window.contains(date.today())

    def test_resolve_window_needs_both_ends(self):
        with pytest.raises(ValueError):
            resolve_window("org-1", "2024-03-01", None)

    def test_resolve_window_rejects_reversed_range(self):
        with pytest.raises(ValueError):
            resolve_window("org-1", "2024-03-31", "2024-03-01")


class TestCommands:
    """Exit codes and wiring of each command."""

    def test_no_command_prints_help(self):
        assert main([]) == 1

    def test_sync_success(self, config_path, service):
        service.synchronize.return_value = SyncResult(success=True, dry_run=True)

        code = main(["-c", str(config_path), "sync", "--start", "2024-03-01",
                     "--end", "2024-03-31", "--dry-run"])

        assert code == 0
        window = service.synchronize.call_args.args[0]
        assert window == SyncWindow("org-1", date(2024, 3, 1), date(2024, 3, 31))
        assert service.synchronize.call_args.kwargs["dry_run"] is True
        assert service.synchronize.call_args.kwargs["delete_orphaned"] is False

    def test_sync_org_flag_overrides_config(self, config_path, service):
        service.synchronize.return_value = SyncResult(success=True, dry_run=False)

        main(["-c", str(config_path), "--org", "org-2", "sync",
              "--start", "2024-03-01", "--end", "2024-03-31"])

        assert service.synchronize.call_args.args[0].organization_id == "org-2"

    def test_sync_item_errors_exit_nonzero(self, config_path, service):
        result = SyncResult(success=True, dry_run=False)
        result.changes.errors.append(SyncError("create", "boom", billing_record_id="X1"))
        service.synchronize.return_value = result

        assert main(["-c", str(config_path), "sync"]) == 1

    def test_sync_abort_exit_nonzero(self, config_path, service):
        service.synchronize.return_value = SyncResult(
            success=False, dry_run=False, error="Failed to fetch billing records"
        )
        assert main(["-c", str(config_path), "sync"]) == 1

    def test_invalid_dates_exit_nonzero(self, config_path, service):
        assert main(["-c", str(config_path), "sync", "--start", "nope", "--end", "2024-03-31"]) == 1
        service.synchronize.assert_not_called()

    def test_missing_organization(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CLARITY_ORGANIZATION_ID", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("sync:\n  staging_backend: memory\n")
        assert main(["-c", str(path), "pending"]) == 1

    def test_invalid_config_exit_nonzero(self, tmp_path, monkeypatch, service):
        for name in ("FILEMAKER_URL", "SUPABASE_URL", "SUPABASE_KEY"):
            monkeypatch.delenv(name, raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("sync:\n  organization_id: org-1\n")

        assert main(["-c", str(path), "sync"]) == 1
        service.synchronize.assert_not_called()

    def test_status(self, config_path, service, capsys):
        service.get_sync_status.return_value = SyncStatus(success=True, in_sync=True)

        assert main(["-c", str(config_path), "status"]) == 0
        assert "In sync:             yes" in capsys.readouterr().out

    def test_status_failure(self, config_path, service):
        service.get_sync_status.return_value = SyncStatus(success=False, error="down")
        assert main(["-c", str(config_path), "status"]) == 1

    def test_pending_reads_staging(self, config_path, temp_db, capsys):
        window = SyncWindow.for_month("org-1", 2024, 3)
        store = SyncStagingStore(SqliteSessionStorage(temp_db))
        store.store(window, SyncComparison())

        code = main(["-c", str(config_path), "pending", "--start", "2024-03-01",
                     "--end", "2024-03-31"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["has_pending"] is False
        assert output["last_review"]

    def test_pending_clear(self, config_path, temp_db):
        window = SyncWindow.for_month("org-1", 2024, 3)
        store = SyncStagingStore(SqliteSessionStorage(temp_db))
        store.store(window, SyncComparison())

        assert main(["-c", str(config_path), "pending", "--clear", "--start", "2024-03-01",
                     "--end", "2024-03-31"]) == 0
        assert store.get(window) is None

    def test_pending_end_session(self, config_path, temp_db, capsys):
        store = SyncStagingStore(SqliteSessionStorage(temp_db))
        march = SyncWindow.for_month("org-1", 2024, 3)
        april = SyncWindow.for_month("org-1", 2024, 4)
        store.store(march, SyncComparison())
        store.store(april, SyncComparison())

        assert main(["-c", str(config_path), "pending", "--end-session"]) == 0
        assert "discarded 2 staged window(s)" in capsys.readouterr().out
        assert store.get(march) is None
        assert store.get(april) is None

    def test_check_connected(self, config_path, capsys):
        with patch("clarity_sync.runner.main.build_filemaker") as build:
            build.return_value.test_connection.return_value = True
            assert main(["-c", str(config_path), "check"]) == 0
        assert "Connected to FileMaker" in capsys.readouterr().out

    def test_check_connection_failure(self, config_path, capsys):
        with patch("clarity_sync.runner.main.build_filemaker") as build:
            build.return_value.test_connection.return_value = False
            assert main(["-c", str(config_path), "check"]) == 1
        assert "Failed to connect to FileMaker" in capsys.readouterr().out

    def test_backfill_runs_each_month(self, config_path, service):
        service.synchronize_periods.side_effect = lambda windows, **kwargs: [
            (w, SyncResult(success=True, dry_run=True)) for w in windows
        ]

        code = main(["-c", str(config_path), "backfill", "--from", "2023-11",
                     "--to", "2024-02", "--dry-run"])

        assert code == 0
        windows = service.synchronize_periods.call_args.args[0]
        assert [w.start for w in windows] == [
            "2023-11-01", "2023-12-01", "2024-01-01", "2024-02-01"
        ]
        assert windows[-1].end == "2024-02-29"

    def test_backfill_reversed_range(self, config_path, service):
        assert main(["-c", str(config_path), "backfill", "--from", "2024-03",
                     "--to", "2024-01"]) == 1
        service.synchronize_periods.assert_not_called()

    def test_backfill_failure_exit_nonzero(self, config_path, service):
        service.synchronize_periods.side_effect = lambda windows, **kwargs: [
            (w, SyncResult(success=False, dry_run=False, error="x")) for w in windows
        ]
        assert main(["-c", str(config_path), "backfill", "--from", "2024-01",
                     "--to", "2024-01"]) == 1

    def test_init_config(self, tmp_path):
        path = tmp_path / "new.yaml"
        assert main(["-c", str(path), "init-config"]) == 0
        assert path.exists()
        assert main(["-c", str(path), "init-config"]) == 1


class TestBuildStaging:
    """Staging backend selection."""

    def test_memory_backend(self):
        config = MagicMock()
        config.sync.staging_backend = "memory"
        store = build_staging(config)
        assert store.storage.__class__.__name__ == "MemorySessionStorage"

    def test_sqlite_backend(self, temp_db):
        config = MagicMock()
        config.sync.staging_backend = "sqlite"
        config.sync.session_id = "cli"
        config.state_db_path = temp_db

        store = build_staging(config)

        assert isinstance(store.storage, SqliteSessionStorage)
        assert store.storage.session_id == "cli"
