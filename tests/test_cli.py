import json

import pytest
from httpx import Response

from issuebridge import cli
from issuebridge import config as config_module
from issuebridge.config import Config

LINK = "https://github.com/alice/tool"
REPO_URL = "https://api.github.com/repos/alice/tool"
ISSUES_URL = "https://api.github.com/repos/alice/tool/issues"
SAVE_REPO_URL = "http://backend.test/api/saveRepository"
SAVE_ISSUE_URL = "http://backend.test/api/saveRepository/issue"


@pytest.fixture
def config() -> Config:
    return Config(backend_url="http://backend.test", github_username="alice")


@pytest.fixture
def api(router, repo_json, issues_json):
    router.get(REPO_URL).mock(return_value=Response(200, json=repo_json))
    router.get(ISSUES_URL).mock(return_value=Response(200, json=issues_json))
    router.post(SAVE_REPO_URL).mock(return_value=Response(201))
    router.post(SAVE_ISSUE_URL).mock(return_value=Response(201))
    return router


def _answers(monkeypatch, *answers):
    replies = iter(answers)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(replies))


def test_dry_run_saves_nothing(config, api, capsys):
    assert cli.cmd_import(config, LINK, dry_run=True) == 0

    out = capsys.readouterr().out
    assert "alice/tool" in out
    assert "A small tool" in out
    assert "Public" in out
    assert all(call.request.method == "GET" for call in api.calls)


def test_import_selected_issues(config, api, capsys):
    code = cli.cmd_import(config, LINK, assume_yes=True, issue_numbers=[5, 99])

    assert code == 0
    posted = [json.loads(c.request.content) for c in api.calls if c.request.url == SAVE_ISSUE_URL]
    assert [p["number"] for p in posted] == [5]
    assert posted[0]["repositoryId"] == "123456789"
    out = capsys.readouterr().out
    assert "✅ Issue #5 saved." in out
    assert "Import complete — 1 saved, 0 failed" in out


def test_import_all_issues(config, api, capsys):
    assert cli.cmd_import(config, LINK, assume_yes=True, all_issues=True) == 0

    out = capsys.readouterr().out
    assert "#7: Crash on start" in out
    assert "#6" not in out
    assert "Import complete — 2 saved, 0 failed" in out


def test_import_interactive(config, api, monkeypatch, capsys):
    _answers(monkeypatch, "y", "7, #5, x")

    assert cli.cmd_import(config, LINK) == 0

    out = capsys.readouterr().out
    assert "Import complete — 2 saved, 0 failed" in out


def test_import_declined(config, api, monkeypatch, capsys):
    _answers(monkeypatch, "n")

    assert cli.cmd_import(config, LINK) == 0

    assert "Aborted" in capsys.readouterr().out
    assert all(call.request.method == "GET" for call in api.calls)


def test_import_rejects_other_owner(config, router, capsys):
    assert cli.cmd_import(config, "https://github.com/bob/tool", username="alice") == 1

    assert "❌ You can only add repositories you own." in capsys.readouterr().out
    assert len(router.calls) == 0


def test_import_repository_save_failure(config, router, repo_json, capsys):
    router.get(REPO_URL).mock(return_value=Response(200, json=repo_json))
    router.post(SAVE_REPO_URL).mock(return_value=Response(500))

    assert cli.cmd_import(config, LINK, assume_yes=True) == 1
    assert "❌ Failed to save repository." in capsys.readouterr().out


def test_import_issue_listing_failure_still_succeeds(config, router, repo_json, capsys):
    router.get(REPO_URL).mock(return_value=Response(200, json=repo_json))
    router.get(ISSUES_URL).mock(return_value=Response(500))
    router.post(SAVE_REPO_URL).mock(return_value=Response(201))

    assert cli.cmd_import(config, LINK, assume_yes=True) == 0
    assert "❌ Failed to fetch issues." in capsys.readouterr().out


def test_parse_numbers():
    assert cli._parse_numbers("1, #2,,abc, 3") == [1, 2, 3]


def test_main_without_command_prints_help(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 1
    assert "usage: issuebridge" in capsys.readouterr().out


def test_main_requires_backend_url(monkeypatch):
    monkeypatch.setattr(config_module, "load_dotenv", lambda: False)
    monkeypatch.delenv("BACKEND_URL", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["import", LINK])
    assert excinfo.value.code == 1


def test_main_runs_import(monkeypatch, api):
    monkeypatch.setattr(config_module, "load_dotenv", lambda: False)
    monkeypatch.setenv("BACKEND_URL", "http://backend.test")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("BACKEND_TOKEN", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["import", LINK, "--username", "alice", "--yes", "--issue", "7"])
    assert excinfo.value.code == 0
