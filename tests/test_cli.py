import pytest
from click.testing import CliRunner

from authconsole.cli import cli, run_line


def _url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


def test_status_before_and_after_migrate(tmp_path):
    runner = CliRunner()
    url = _url(tmp_path)

    result = runner.invoke(cli, ["--database-url", url, "status"])
    assert result.exit_code == 0
    assert "Users table: MISSING" in result.output

    result = runner.invoke(cli, ["--database-url", url, "migrate"])
    assert result.exit_code == 0
    assert "Applied 3 migration(s)" in result.output

    result = runner.invoke(cli, ["--database-url", url, "migrate"])
    assert result.exit_code == 0
    assert "Database is up to date" in result.output

    result = runner.invoke(cli, ["--database-url", url, "status"])
    assert "Users table: EXISTS" in result.output
    assert "pending" not in result.output


def test_shell_session(tmp_path):
    runner = CliRunner()
    url = _url(tmp_path)
    runner.invoke(cli, ["--database-url", url, "migrate"])

    script = "\n".join(
        [
            "help",
            "register alice secret1",
            "login alice wrong",
            "login alice secret1",
            "info 1",
            "list",
            "assign 1 2",
            "roles 1",
            "logout 1",
            "info abc",
            "logout",
            "frobnicate",
            "exit",
        ]
    )
    result = runner.invoke(cli, ["--database-url", url, "shell"], input=script + "\n")

    assert result.exit_code == 0
    out = result.output
    assert "User alice registered" in out
    assert "Invalid username or password" in out
    assert "Welcome alice" in out
    assert "[1] alice (logged in)" in out
    assert "Role 2 assigned to user 1" in out
    assert "Admin" in out
    assert "User 1 logged out" in out
    assert "'abc' is not a valid id" in out
    assert "Missing arguments for 'logout'" in out
    assert "Unknown command 'frobnicate'" in out
    assert "bye" in out


def test_shell_prompts_for_password(tmp_path):
    runner = CliRunner()
    url = _url(tmp_path)
    runner.invoke(cli, ["--database-url", url, "migrate"])

    result = runner.invoke(
        cli,
        ["--database-url", url, "shell"],
        input="register bob\nhunter22\nhunter22\nexit\n",
    )
    assert result.exit_code == 0
    assert "User bob registered" in result.output


def test_shell_warns_about_pending_migrations(tmp_path):
    result = CliRunner().invoke(cli, ["--database-url", _url(tmp_path)], input="exit\n")
    assert result.exit_code == 0
    assert "3 pending migration(s)" in result.output


def test_unreachable_store_exits(tmp_path):
    url = f"sqlite:///{tmp_path / 'no' / 'such' / 'dir.db'}"
    result = CliRunner().invoke(cli, ["--database-url", url, "shell"])
    assert result.exit_code == 1
    assert "Database connection failed" in result.output


def test_missing_arguments_checked_before_dispatch(processor, monkeypatch, capsys):
    calls = []
    monkeypatch.setattr(processor, "assign", lambda *args: calls.append(args))
    assert run_line(processor, "assign 1") is True
    assert calls == []
    assert "Missing arguments for 'assign'" in capsys.readouterr().out


def test_handler_index_error_is_not_reported_as_missing_arguments(processor, monkeypatch):
    def broken(user_id):
        raise IndexError("list index out of range")

    monkeypatch.setattr(processor, "logout", broken)
    with pytest.raises(IndexError):
        run_line(processor, "logout 1")
