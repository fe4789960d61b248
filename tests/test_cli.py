"""Unit tests for the pygitpush CLI commands."""

import json
from functools import partial
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from pygitpush.cli import main
from pygitpush.exceptions import GitPushAuthenticationError
from pygitpush.models import RateBudget
from pygitpush.sync import PushEvent, PushRecord, PushStatisticsStore, SyncEngine

TARGET_ARGS = ["--owner", "octo", "--repo", "demo"]


def parse_json(output: str):
    """Parse the JSON document printed by a command."""
    start = min(i for i in (output.find("{"), output.find("[")) if i >= 0)
    return json.loads(output[start:])


@pytest.fixture
def runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def mock_config():
    """Mock the config module."""
    with patch("pygitpush.cli.config") as mock:
        mock.is_configured.return_value = False
        mock.token = None
        mock.repo_owner = None
        mock.repo_name = None
        mock.branch = None
        mock.get_config_path.return_value = "/tmp/pygitpush/config"
        yield mock


@pytest.fixture
def stats_dir(tmp_path):
    return tmp_path / "stats"


@pytest.fixture
def cli_env(fake_client, stats_dir):
    """Route the CLI to the in-memory remote, without real sleeps."""
    with patch("pygitpush.cli.GitHubClient", return_value=fake_client), patch(
        "pygitpush.cli.PushStatisticsStore",
        side_effect=lambda: PushStatisticsStore(stats_dir=stats_dir),
    ), patch(
        "pygitpush.cli.SyncEngine", partial(SyncEngine, sleep=lambda seconds: None)
    ):
        yield fake_client


@pytest.fixture
def archive(tmp_path, make_zip):
    """Write a small project export to disk."""
    path = tmp_path / "my-project.zip"
    path.write_bytes(
        make_zip(
            {
                "project/README.md": b"# Demo\n",
                "project/src/app.js": b"console.log('hi')\n",
            }
        )
    )
    return path


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        """Test main help shows all commands."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "pygitpush" in result.output
        assert "--token" in result.output
        for command in ("init", "status", "rate-limit", "diff", "push", "stats"):
            assert command in result.output

    def test_push_help(self, runner):
        result = runner.invoke(main, ["push", "--help"])
        assert result.exit_code == 0
        assert "--apply-deletions" in result.output
        assert "--message" in result.output


class TestInitCommand:
    """Tests for the init command."""

    @patch("pygitpush.cli.GitHubClient")
    def test_init_saves_token_and_repository(
        self, mock_client_class, runner, mock_config, fake_client
    ):
        mock_client_class.return_value = fake_client

        result = runner.invoke(
            main,
            ["init", "--owner", "octo", "--repo", "demo"],
            input="secret-token\n",
        )

        assert result.exit_code == 0
        assert "Token is valid (user: octocat)" in result.output
        mock_config.save_token.assert_called_once_with("secret-token")
        mock_config.save_repository.assert_called_once_with("octo", "demo", None)
        assert "octo/demo@main" in result.output

    @patch("pygitpush.cli.GitHubClient")
    def test_init_invalid_token_cancelled(
        self, mock_client_class, runner, mock_config
    ):
        client = MagicMock()
        client.__enter__.return_value = client
        client.get_authenticated_user.side_effect = GitPushAuthenticationError(
            "Bad credentials - token is invalid or expired", 401
        )
        mock_client_class.return_value = client

        result = runner.invoke(main, ["init"], input="bad\nn\n")

        assert result.exit_code == 1
        assert "Token validation failed" in result.output
        mock_config.save_token.assert_not_called()


class TestStatusCommand:
    """Tests for the status and rate-limit commands."""

    def test_status(self, runner, cli_env, mock_config):
        mock_config.repo_owner = "octo"
        mock_config.repo_name = "demo"

        result = runner.invoke(main, ["--token", "t", "status"])

        assert result.exit_code == 0
        assert "octocat" in result.output
        assert "octo/demo@main" in result.output

    def test_status_not_configured(self, runner, mock_config):
        with patch("pygitpush.auth.config") as auth_config:
            auth_config.token = None
            result = runner.invoke(main, ["status"], env={"GITHUB_TOKEN": ""})

        assert result.exit_code == 1
        assert "pygitpush init" in result.output

    def test_rate_limit_json(self, runner, cli_env):
        cli_env.rate_budget = RateBudget(
            remaining=42, reset_epoch_seconds=1700000000, limit=5000
        )

        result = runner.invoke(main, ["--token", "t", "--json", "rate-limit"])

        assert result.exit_code == 0
        assert parse_json(result.output) == {
            "remaining": 42,
            "limit": 5000,
            "reset": 1700000000,
        }


class TestDiffCommand:
    """Tests for the diff command."""

    def test_diff_lists_changes_without_writing(self, runner, cli_env, archive):
        cli_env.seed({"README.md": b"# Old\n", "old.txt": b"x"})

        result = runner.invoke(
            main, ["--token", "t", "diff", str(archive), *TARGET_ARGS]
        )

        assert result.exit_code == 0
        assert "src/app.js" in result.output
        assert "old.txt" in result.output
        assert cli_env.write_calls == []

    def test_diff_json(self, runner, cli_env, archive):
        cli_env.seed({"README.md": b"# Demo\n"})

        result = runner.invoke(
            main, ["--token", "t", "--json", "diff", str(archive), *TARGET_ARGS]
        )

        data = parse_json(result.output)
        assert data["counts"] == {
            "added": 1,
            "modified": 0,
            "unchanged": 1,
            "deleted": 0,
        }
        assert data["files"] == [{"status": "added", "path": "src/app.js"}]


class TestPushCommand:
    """Tests for the push command."""

    def test_push(self, runner, cli_env, archive, stats_dir):
        result = runner.invoke(
            main,
            ["--token", "t", "push", str(archive), *TARGET_ARGS, "--no-progress"],
        )

        assert result.exit_code == 0, result.output
        assert "Successfully pushed 2 files" in result.output
        assert "Push Complete" in result.output
        assert cli_env.files_on("main") == {
            "README.md": b"# Demo\n",
            "src/app.js": b"console.log('hi')\n",
        }
        assert cli_env.closed

        summary = PushStatisticsStore(stats_dir=stats_dir).load()
        assert summary.total_successes == 1
        assert summary.records[0].project_id == "my-project"

    def test_push_with_progress_display(self, runner, cli_env, archive):
        result = runner.invoke(
            main, ["--token", "t", "push", str(archive), *TARGET_ARGS]
        )

        assert result.exit_code == 0, result.output
        assert cli_env.refs.get("main") is not None

    def test_push_no_changes(self, runner, cli_env, archive):
        cli_env.seed(
            {"README.md": b"# Demo\n", "src/app.js": b"console.log('hi')\n"}
        )

        result = runner.invoke(
            main,
            ["--token", "t", "push", str(archive), *TARGET_ARGS, "--no-progress"],
        )

        assert result.exit_code == 0
        assert "No changes detected" in result.output
        assert cli_env.write_calls == []

    def test_push_json(self, runner, cli_env, archive):
        result = runner.invoke(
            main,
            [
                "--token",
                "t",
                "--json",
                "push",
                str(archive),
                *TARGET_ARGS,
                "-m",
                "Export from editor",
            ],
        )

        data = parse_json(result.output)
        assert data["files_uploaded"] == 2
        assert data["target"] == "octo/demo@main"
        assert data["commit"] == cli_env.refs["main"]
        assert cli_env.commit_payloads[-1]["message"] == "Export from editor"

    def test_push_auth_failure_hints_init(self, runner, cli_env, archive):
        cli_env.failures["get_repository"] = [
            GitPushAuthenticationError(
                "Bad credentials - token is invalid or expired", 401
            )
        ]

        result = runner.invoke(
            main,
            ["--token", "t", "push", str(archive), *TARGET_ARGS, "--no-progress"],
        )

        assert result.exit_code == 1
        assert "Bad credentials" in result.output
        assert "pygitpush init" in result.output

    def test_push_missing_repository_config(
        self, runner, cli_env, archive, stats_dir
    ):
        with patch("pygitpush.models.config") as models_config:
            models_config.repo_owner = None
            models_config.repo_name = None
            models_config.branch = None
            result = runner.invoke(
                main, ["--token", "t", "push", str(archive), "--no-progress"]
            )

        assert result.exit_code == 1
        assert "Repository details not configured" in result.output
        assert "pygitpush init" in result.output
        assert cli_env.calls == []

        summary = PushStatisticsStore(stats_dir=stats_dir).load()
        assert summary.total_failures == 1


class TestStatsCommand:
    """Tests for the stats command."""

    def test_stats_summary(self, runner, cli_env, stats_dir):
        store = PushStatisticsStore(stats_dir=stats_dir)
        store.record(
            PushRecord(
                event=PushEvent.ATTEMPT,
                repo_owner="octo",
                repo_name="demo",
                branch="main",
            )
        )

        result = runner.invoke(main, ["stats"])

        assert result.exit_code == 0
        assert "Push Statistics" in result.output
        assert "octo/demo@main" in result.output

    def test_stats_clear(self, runner, cli_env, stats_dir):
        result = runner.invoke(main, ["stats", "--clear"])

        assert result.exit_code == 0
        assert "No push statistics stored" in result.output
