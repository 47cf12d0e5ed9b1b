"""Unit tests for the command-line entry point."""

import logging

import pytest

import xrift

VERIFY = ("GET", "/api/auth/verify-cli-token")


@pytest.fixture(autouse=True)
def reset_logger():
    """main() installs handlers on the module logger; drop them after each test."""
    yield
    for handler in list(xrift.logger.handlers):
        handler.close()
    xrift.logger.handlers = []
    xrift.logger.setLevel(logging.NOTSET)


class TestCLIParsing:
    """Test CLI argument parsing."""

    def test_no_args_prints_help(self, capsys):
        """No args should print help and return 0."""
        result = xrift.main([])

        assert result == 0
        assert "usage:" in capsys.readouterr().out

    def test_help_returns_zero(self):
        assert xrift.main(["--help"]) == 0

    def test_version(self, capsys):
        assert xrift.main(["--version"]) == 0
        assert xrift.VERSION in capsys.readouterr().out

    def test_unknown_command_returns_nonzero(self):
        assert xrift.main(["deploy"]) != 0

    def test_upload_without_target_prints_help(self, capsys):
        assert xrift.main(["upload"]) == 0
        assert "world" in capsys.readouterr().out


class TestLoginCommand:
    def test_success_prints_user(self, mocker, capsys):
        mocker.patch("xrift.login", return_value={"valid": True, "username": "alice"})

        assert xrift.main(["login"]) == 0

        out = capsys.readouterr().out
        assert "Logged in successfully" in out
        assert "alice" in out

    def test_timeout_exit_code(self, mocker, capsys):
        mocker.patch(
            "xrift.login",
            side_effect=xrift.AuthTimeoutError("Login timed out", hint="Run `xrift login` again"),
        )

        assert xrift.main(["login"]) == 1

        err = capsys.readouterr().err
        assert "Error: Login timed out" in err
        assert "Hint: Run `xrift login` again" in err

    def test_login_uses_environment_urls(self, mocker, monkeypatch):
        monkeypatch.setenv("XRIFT_FRONTEND_URL", "http://localhost:5173")
        login = mocker.patch("xrift.login", return_value={"valid": True})

        xrift.main(["login"])

        ctx = login.call_args.args[0]
        assert ctx.frontend_url == "http://localhost:5173"


class TestLogoutCommand:
    def test_logout_removes_credential(self, ctx, logged_in, capsys):
        assert xrift.main(["logout"]) == 0

        assert "Logged out" in capsys.readouterr().out
        assert xrift.get_token(ctx) is None

    def test_logout_when_not_logged_in(self, capsys):
        assert xrift.main(["logout"]) == 0
        assert "Not logged in" in capsys.readouterr().out


class TestWhoamiCommand:
    def test_not_logged_in_is_not_an_error(self, api_mock, capsys):
        mock = api_mock({})

        assert xrift.main(["whoami"]) == 0

        assert "Not logged in" in capsys.readouterr().out
        assert mock["calls"] == []

    def test_valid_token(self, logged_in, api_mock, capsys):
        api_mock({VERIFY: (200, {"valid": True, "user": {"username": "alice", "email": "alice@example.com"}})})

        assert xrift.main(["whoami"]) == 0

        out = capsys.readouterr().out
        assert "Username: alice" in out
        assert "Email: alice@example.com" in out

    def test_invalid_token(self, ctx, logged_in, api_mock, capsys):
        api_mock({VERIFY: (401, {})})

        assert xrift.main(["whoami"]) == 0

        assert "invalid" in capsys.readouterr().out
        assert xrift.get_token(ctx) == logged_in

    def test_timeout_exits_cleanly(self, logged_in, api_mock, capsys):
        def time_out(call):
            raise TimeoutError("timed out")

        api_mock({VERIFY: time_out})

        assert xrift.main(["whoami"]) == 1
        assert "timed out" in capsys.readouterr().err

    def test_server_error(self, logged_in, api_mock, capsys):
        api_mock({VERIFY: (500, {"message": "down"})})

        assert xrift.main(["whoami"]) == 1
        assert "down" in capsys.readouterr().err


class TestUploadWorldCommand:
    def test_missing_project_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)

        assert xrift.main(["upload", "world"]) == 1

        err = capsys.readouterr().err
        assert "Error:" in err
        assert "Hint:" in err

    def test_runs_in_current_directory(self, project_root, monkeypatch, mocker, capsys):
        monkeypatch.chdir(project_root)
        upload = mocker.patch(
            "xrift.upload_world",
            return_value=xrift.UploadResult("world_1", True, 3, 30, "abcdef123456"),
        )

        assert xrift.main(["upload", "world", "--jobs", "3", "--yes"]) == 0

        ctx, root = upload.call_args.args
        assert root.resolve() == project_root.resolve()
        assert ctx.jobs == 3
        assert ctx.interactive is False
        assert "World ID: world_1" in capsys.readouterr().out

    def test_jobs_from_settings(self, config_dir, project_root, monkeypatch, mocker):
        config_dir.mkdir(parents=True)
        (config_dir / "settings.toml").write_text("[upload]\njobs = 6\n")
        monkeypatch.chdir(project_root)
        upload = mocker.patch("xrift.upload_world", return_value=None)

        assert xrift.main(["upload", "world"]) == 0
        assert upload.call_args.args[0].jobs == 6

    def test_not_logged_in(self, project_root, monkeypatch, api_mock, capsys):
        (project_root / "dist" / "world.glb").write_bytes(b"x")
        monkeypatch.chdir(project_root)
        api_mock({})

        assert xrift.main(["upload", "world"]) == 1
        assert "xrift login" in capsys.readouterr().err

    def test_progress_lines(self, logged_in, project_root, monkeypatch, api_mock, capsys):
        (project_root / "dist" / "world.glb").write_bytes(b"x")
        monkeypatch.chdir(project_root)
        api_mock({
            VERIFY: (200, {"valid": True}),
            ("POST", "/api/worlds"): (201, {"id": "world_9"}),
            ("POST", "/api/worlds/world_9/upload-urls"): (
                200, {"urls": [{"path": "world.glb", "uploadUrl": "https://storage.test/put/world.glb"}]}
            ),
            ("PUT", "/put/world.glb"): (200, b""),
            ("POST", "/api/worlds/world_9/complete"): (200, {}),
        })

        assert xrift.main(["upload", "world", "-y"]) == 0

        out = capsys.readouterr().out
        assert "[1/1] world.glb" in out
        assert "World ID: world_9" in out


class TestSettingsErrors:
    def test_invalid_settings_file(self, config_dir, capsys):
        config_dir.mkdir(parents=True)
        (config_dir / "settings.toml").write_text("api_url = \n")

        assert xrift.main(["whoami"]) == 1
        assert "settings.toml" in capsys.readouterr().err
