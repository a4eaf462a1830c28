"""Tests for the CLI entry point."""

from pathlib import Path

import yaml
from click.testing import CliRunner

from commitlens_cli.cli import main
from commitlens_core.config import DEFAULT_CONFIG
from commitlens_core.errors import AllProvidersFailedError, GitError
from commitlens_core.git import DiffInfo
from commitlens_core.models import Candidate, Mode

DIFF = DiffInfo(files=("src/app.py",), diff="diff --git a/src/app.py b/src/app.py\n+x = 1\n")
CHOICE = Candidate(title="feat: add app", value="feat: add app\n\nInitial version.", description="Initial version.")


def _make_config(providers=None, **overrides):
    config = {**DEFAULT_CONFIG, "exclude": [], "providers": providers if providers is not None else {"openai": {"key": "k"}}}
    config.update(overrides)
    return config


def _patch_common(mocker, config=None, diff=DIFF, choice=CHOICE):
    """Patch config loading, git and the selection run for most tests."""
    load_config = mocker.patch("commitlens_core.config.load_config", return_value=config or _make_config())
    mocker.patch("commitlens_cli.runner.assert_git_repo")
    staged = mocker.patch("commitlens_cli.runner.get_staged_diff", return_value=diff)
    run_selection = mocker.patch("commitlens_cli.runner.run_selection", new_callable=mocker.AsyncMock, return_value=choice)
    return load_config, staged, run_selection


class TestCommitValidation:
    def test_not_a_git_repository(self, mocker):
        _patch_common(mocker)
        mocker.patch(
            "commitlens_cli.runner.assert_git_repo",
            side_effect=GitError("The current directory must be a Git repository!"),
        )

        result = CliRunner().invoke(main, ["commit"])
        assert result.exit_code == 1
        assert "must be a Git repository" in result.output

    def test_no_staged_changes(self, mocker):
        _, _, run_selection = _patch_common(mocker, diff=None)

        result = CliRunner().invoke(main, ["commit"])
        assert result.exit_code == 2
        assert "No staged changes found" in result.output
        run_selection.assert_not_called()

    def test_no_configured_backend(self, mocker):
        _, _, run_selection = _patch_common(mocker, config=_make_config(providers={}))

        result = CliRunner().invoke(main, ["commit"])
        assert result.exit_code == 2
        assert "OPENAI_API_KEY" in result.output
        run_selection.assert_not_called()

    def test_invalid_generate_count(self, mocker):
        _patch_common(mocker)
        result = CliRunner().invoke(main, ["commit", "--generate", "0"])
        assert result.exit_code == 2


class TestCommitRun:
    def test_yes_commits_selected_message(self, mocker):
        _, _, run_selection = _patch_common(mocker)
        commit = mocker.patch("commitlens_cli.commands.commit.commit")

        result = CliRunner().invoke(main, ["commit", "--yes"])

        assert result.exit_code == 0, result.output
        commit.assert_called_once_with("feat: add app\n\nInitial version.")
        assert "Successfully committed!" in result.output
        assert run_selection.await_args.args[3] is Mode.COMMIT

    def test_confirmation_declined(self, mocker):
        _patch_common(mocker)
        commit = mocker.patch("commitlens_cli.commands.commit.commit")

        result = CliRunner().invoke(main, ["commit"], input="n\n")

        assert result.exit_code == 0
        commit.assert_not_called()
        assert "Commit cancelled" in result.output

    def test_confirmation_accepted(self, mocker):
        _patch_common(mocker)
        commit = mocker.patch("commitlens_cli.commands.commit.commit")

        result = CliRunner().invoke(main, ["commit"], input="y\n")

        assert result.exit_code == 0
        commit.assert_called_once()

    def test_dry_run_prints_message_without_committing(self, mocker):
        _patch_common(mocker)
        commit = mocker.patch("commitlens_cli.commands.commit.commit")

        result = CliRunner().invoke(main, ["commit", "--dry-run"])

        assert result.exit_code == 0
        assert "Initial version." in result.output
        commit.assert_not_called()

    def test_nothing_selected(self, mocker):
        _patch_common(mocker, choice=None)
        commit = mocker.patch("commitlens_cli.commands.commit.commit")

        result = CliRunner().invoke(main, ["commit", "--yes"])

        assert result.exit_code == 0
        assert "Commit cancelled" in result.output
        commit.assert_not_called()

    def test_every_backend_failing_is_an_error(self, mocker):
        _patch_common(mocker)
        mocker.patch(
            "commitlens_cli.runner.run_selection",
            new_callable=mocker.AsyncMock,
            side_effect=AllProvidersFailedError({"openai": "quota exceeded"}),
        )

        result = CliRunner().invoke(main, ["commit", "--yes"])

        assert result.exit_code == 1
        assert "All AI backends failed (openai: quota exceeded)" in result.output

    def test_git_commit_failure(self, mocker):
        _patch_common(mocker)
        mocker.patch("commitlens_cli.commands.commit.commit", side_effect=GitError("pre-commit hook failed"))

        result = CliRunner().invoke(main, ["commit", "--yes"])

        assert result.exit_code == 1
        assert "pre-commit hook failed" in result.output

    def test_options_reach_config_and_diff(self, mocker):
        load_config, staged, _ = _patch_common(mocker, config=_make_config(exclude=["*.snap"]))
        mocker.patch("commitlens_cli.commands.commit.commit")

        CliRunner().invoke(
            main,
            ["--config", "custom.yml", "commit", "-y", "-l", "ko", "-g", "3", "-t", "conventional", "-x", "docs/"],
        )

        args, kwargs = load_config.call_args
        assert args[0] == "custom.yml"
        assert kwargs["cli_overrides"] == {"locale": "ko", "generate": 3, "type": "conventional", "prompt": None}
        staged.assert_called_once_with(["*.snap", "docs/"])

    def test_all_flag_stages_tracked_changes(self, mocker):
        _patch_common(mocker)
        mocker.patch("commitlens_cli.commands.commit.commit")
        stage = mocker.patch("commitlens_cli.runner.stage_tracked_changes")

        CliRunner().invoke(main, ["commit", "--all", "--yes"])

        stage.assert_called_once()

    def test_context_carries_config(self, mocker):
        _, _, run_selection = _patch_common(mocker, config=_make_config(locale="ja", generate=2, type="gitmoji"))
        mocker.patch("commitlens_cli.commands.commit.commit")

        CliRunner().invoke(main, ["commit", "--yes"])

        context = run_selection.await_args.args[1]
        assert context.locale == "ja"
        assert context.generate == 2
        assert context.commit_type == "gitmoji"
        assert context.files == ("src/app.py",)


class TestReview:
    def test_review_prints_selected_review(self, mocker):
        review = Candidate(title="Possible bug", value="## Possible bug\nThe loop never ends.")
        _, _, run_selection = _patch_common(
            mocker, config=_make_config(code_review=True), choice=review
        )

        result = CliRunner().invoke(main, ["review"])

        assert result.exit_code == 0, result.output
        assert "The loop never ends." in result.output
        assert run_selection.await_args.args[3] is Mode.REVIEW

    def test_review_requires_code_review_enabled(self, mocker):
        _, _, run_selection = _patch_common(mocker)

        result = CliRunner().invoke(main, ["review"])

        assert result.exit_code == 2
        assert "code review enabled" in result.output
        run_selection.assert_not_called()


class TestWatch:
    def test_starts_monitor_in_current_directory(self, mocker):
        monitor_cls = mocker.patch("commitlens_cli.commands.watch.CommitMonitor")
        monitor_cls.return_value.run = mocker.AsyncMock()

        result = CliRunner().invoke(main, ["watch"])

        assert result.exit_code == 0, result.output
        kwargs = monitor_cls.call_args.kwargs
        assert kwargs["repo_path"] == Path.cwd()
        assert kwargs["backoff"] == 3.0
        monitor_cls.return_value.run.assert_awaited_once()

    def test_config_loader_applies_watch_options(self, mocker):
        load_config = mocker.patch("commitlens_core.config.load_config", return_value=_make_config(exclude=["*.snap"]))
        monitor_cls = mocker.patch("commitlens_cli.commands.watch.CommitMonitor")
        monitor_cls.return_value.run = mocker.AsyncMock()

        CliRunner().invoke(main, ["watch", "-l", "ko", "-x", "vendor/"])

        config = monitor_cls.call_args.kwargs["load_config"]()
        assert config["exclude"] == ["*.snap", "vendor/"]
        assert load_config.call_args.kwargs["cli_overrides"] == {"locale": "ko", "prompt": None}

    def test_interrupt_stops_cleanly(self, mocker):
        mocker.patch("commitlens_cli.commands.watch.CommitMonitor")
        mocker.patch("commitlens_cli.commands.watch.asyncio.run", side_effect=KeyboardInterrupt)

        result = CliRunner().invoke(main, ["watch"])

        assert result.exit_code == 0
        assert "Stopped watching for commits" in result.output


class TestInit:
    def test_writes_selected_backends(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["init"], input="y\n\nn\ny\nllama3, codellama\n\ny\nko\n")

            assert result.exit_code == 0, result.output
            config = yaml.safe_load(Path(".commitlens.yml").read_text())

        assert config["locale"] == "ko"
        assert config["code_review"] is True
        assert config["providers"]["openai"] == {"model": "gpt-4o-mini"}
        assert "anthropic" not in config["providers"]
        assert config["providers"]["ollama"] == {"model": ["llama3", "codellama"], "host": "http://localhost:11434"}
        assert "OPENAI_API_KEY" in result.output

    def test_existing_keys_are_preserved(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path(".commitlens.yml").write_text("exclude:\n  - vendor/\n")
            runner.invoke(main, ["init"], input="y\n\nn\nn\nn\n\n")
            config = yaml.safe_load(Path(".commitlens.yml").read_text())

        assert config["exclude"] == ["vendor/"]
        assert config["providers"] == {"openai": {"model": "gpt-4o-mini"}}

    def test_no_backend_selected(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["init"], input="n\nn\nn\n")
            assert not Path(".commitlens.yml").exists()

        assert result.exit_code == 2
        assert "Select at least one backend." in result.output
