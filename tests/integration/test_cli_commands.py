"""Integration tests for CLI commands with a mocked API client."""
import base64
import io
import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from PIL import Image
from unittest.mock import patch

from facecheck.cli.commands import cli
from facecheck.exceptions import APIError, PollTimeoutError, TransportError
from facecheck.utils.config_loader import CONFIG_ENV, TOKEN_ENV

UPLOAD_RESPONSE = {
    "id_search": "abc123", "message": "ok", "progress": 100, "was_updated": True,
    "input": [{"id_pic": "p1", "url_source": "http://x"}],
}


def search_response(items):
    return {
        "id_search": "abc123", "message": "Done", "progress": 100,
        "output": {"items": items, "tookSeconds": 10, "searchedFaces": 500,
                   "max_score": 95, "demo": False, "face_per_sec": 50},
    }


def png_b64() -> str:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color="blue").save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode()


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    """Token from environment, no config file."""
    monkeypatch.setenv(TOKEN_ENV, "test-token")
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "missing.yaml"))


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def api():
    """Mocked FaceCheckClient instance used inside `with`."""
    with patch("facecheck.cli.commands.FaceCheckClient") as MockClient:
        instance = MockClient.return_value.__enter__.return_value
        instance.MockClient = MockClient
        yield instance


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "face.png"
    Image.new("RGB", (16, 16), color="red").save(path, format="PNG")
    return path


class TestConfig:
    """Token resolution at the command boundary."""

    def test_missing_token(self, runner, api, monkeypatch):
        """No token anywhere: exit 1 and no client created."""
        monkeypatch.delenv(TOKEN_ENV)

        result = runner.invoke(cli, ["info"])

        assert result.exit_code == 1
        assert "API token missing" in result.output
        api.MockClient.assert_not_called()

    def test_token_option_used(self, runner, api, monkeypatch):
        monkeypatch.delenv(TOKEN_ENV)
        api.info.return_value = {"faces": 1}

        result = runner.invoke(cli, ["--token", "opt-token", "info"])

        assert result.exit_code == 0
        settings = api.MockClient.call_args.args[0]
        assert settings.token == "opt-token"

    def test_token_from_config_file(self, runner, api, monkeypatch, tmp_path):
        monkeypatch.delenv(TOKEN_ENV)
        config = tmp_path / "config.yaml"
        config.write_text("api:\n  token: file-token\n")
        api.info.return_value = {}

        result = runner.invoke(cli, ["--config", str(config), "info"])

        assert result.exit_code == 0
        assert api.MockClient.call_args.args[0].token == "file-token"


class TestUpload:
    """Tests for upload command."""

    def test_upload_prints_summary_and_hint(self, runner, api, image):
        api.upload_pic.return_value = UPLOAD_RESPONSE

        result = runner.invoke(cli, ["upload", str(image)])

        assert result.exit_code == 0
        assert "Search ID: abc123" in result.output
        assert "Was Updated: Yes" in result.output
        assert "Images Count: 1" in result.output
        assert "p1: http://x" in result.output
        assert "facecheck search abc123 --wait" in result.output
        api.upload_pic.assert_called_once_with(image, id_search=None, reset_prev_images=False)

    def test_upload_append_and_reset(self, runner, api, image):
        api.upload_pic.return_value = UPLOAD_RESPONSE

        result = runner.invoke(cli, ["upload", str(image), "--id", "abc123", "--reset"])

        assert result.exit_code == 0
        api.upload_pic.assert_called_once_with(image, id_search="abc123", reset_prev_images=True)

    def test_upload_missing_file(self, runner, api, tmp_path):
        result = runner.invoke(cli, ["upload", str(tmp_path / "nope.jpg")])

        assert result.exit_code == 1
        assert "File not found" in result.output
        api.upload_pic.assert_not_called()

    def test_upload_non_image_warns(self, runner, api, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        api.upload_pic.return_value = UPLOAD_RESPONSE

        result = runner.invoke(cli, ["upload", str(path)])

        assert result.exit_code == 0
        assert "does not look like an image" in result.output
        api.upload_pic.assert_called_once()

    def test_upload_with_poll(self, runner, api, image):
        api.upload_pic.return_value = UPLOAD_RESPONSE
        with patch("facecheck.cli.commands.poll_search",
                   return_value=search_response([{"score": 88, "url": "http://m"}])) as poll:
            result = runner.invoke(cli, ["upload", str(image), "--poll", "--demo", "--timeout", "30"])

        assert result.exit_code == 0
        assert "Score: 88" in result.output
        assert "--wait" not in result.output
        assert poll.call_args.args[1] == "abc123"
        assert poll.call_args.kwargs["demo"] is True
        assert poll.call_args.kwargs["timeout"] == 30.0

    def test_upload_api_error(self, runner, api, image):
        api.upload_pic.side_effect = APIError("Invalid image")

        result = runner.invoke(cli, ["upload", str(image)])

        assert result.exit_code == 1
        assert "Invalid image" in result.output
        assert "Search ID" not in result.output


class TestSearch:
    """Tests for search and status commands."""

    def test_requires_search_id(self, runner, api):
        result = runner.invoke(cli, ["search"])

        assert result.exit_code == 1
        assert "Search ID required" in result.output
        api.search.assert_not_called()

    def test_ranked_output(self, runner, api):
        api.search.return_value = search_response([
            {"score": 90, "url": "http://low", "group": 0},
            {"score": 95, "url": "http://high", "group": 3},
        ])

        result = runner.invoke(cli, ["search", "abc123"])

        assert result.exit_code == 0
        assert result.output.index("Score: 95") < result.output.index("Score: 90")
        assert "Group: 3" in result.output
        assert result.output.count("Group:") == 1
        api.search.assert_called_once_with({"id_search": "abc123"})

    def test_flags_in_payload(self, runner, api):
        api.search.return_value = {"id_search": "abc123"}

        result = runner.invoke(
            cli, ["search", "--id", "abc123", "--progress", "--demo", "--shady-only"]
        )

        assert result.exit_code == 0
        api.search.assert_called_once_with({
            "id_search": "abc123", "with_progress": True, "demo": True, "shady_only": True,
        })

    def test_status_equals_search_status_only(self, runner, api):
        api.search.return_value = {"id_search": "abc123", "progress": 50}

        runner.invoke(cli, ["status", "abc123"])
        runner.invoke(cli, ["search", "abc123", "--status-only"])

        first, second = api.search.call_args_list
        assert first.args[0] == {"id_search": "abc123", "status_only": True}
        assert first.args[0] == second.args[0]

    def test_status_only_ignores_config_demo(self, runner, api, tmp_path):
        """Config demo default does not leak into status checks."""
        config = tmp_path / "config.yaml"
        config.write_text("search:\n  demo: true\n")
        api.search.return_value = {"id_search": "abc123", "progress": 50}

        runner.invoke(cli, ["--config", str(config), "status", "abc123"])
        runner.invoke(cli, ["--config", str(config), "search", "abc123", "--status-only"])

        first, second = api.search.call_args_list
        assert first.args[0] == {"id_search": "abc123", "status_only": True}
        assert second.args[0] == first.args[0]

    def test_config_demo_applies_to_plain_search(self, runner, api, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("search:\n  demo: true\n")
        api.search.return_value = {"id_search": "abc123"}

        result = runner.invoke(cli, ["--config", str(config), "search", "abc123"])

        assert result.exit_code == 0
        api.search.assert_called_once_with({"id_search": "abc123", "demo": True})

    def test_status_requires_id(self, runner, api):
        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 1

    def test_wait_uses_poller(self, runner, api):
        with patch("facecheck.cli.commands.poll_search",
                   return_value=search_response([])) as poll:
            result = runner.invoke(cli, ["search", "abc123", "--wait"])

        assert result.exit_code == 0
        assert "No matches found." in result.output
        poll.assert_called_once()
        api.search.assert_not_called()

    def test_wait_timeout_ends_progress_line(self, runner, api):
        """Timeout error starts on its own line after the progress output."""
        def slow_search(client, id_search, demo, on_progress, timeout):
            on_progress("Searching", 40)
            raise PollTimeoutError(id_search, 5)

        with patch("facecheck.cli.commands.poll_search", side_effect=slow_search):
            result = runner.invoke(cli, ["search", "abc123", "--wait", "--timeout", "5"])

        assert result.exit_code == 1
        assert "Searching 40%" in result.output
        assert "\nError: Search abc123 not finished after 5s." in result.output

    def test_transport_error(self, runner, api):
        api.search.side_effect = TransportError("HTTP 502 from /api/search", status_code=502)

        result = runner.invoke(cli, ["search", "abc123"])

        assert result.exit_code == 1
        assert "HTTP 502" in result.output

    def test_save_thumbs(self, runner, api, tmp_path):
        api.search.return_value = search_response([
            {"score": 70, "url": "http://b", "base64": "!!!broken!!!"},
            {"score": 95, "url": "http://a", "base64": "data:image/png;base64," + png_b64()},
        ])

        with runner.isolated_filesystem(temp_dir=tmp_path) as cwd:
            result = runner.invoke(cli, ["search", "abc123", "--save-thumbs"])
            saved = sorted(p.name for p in Path(cwd).iterdir())

        assert result.exit_code == 0
        assert saved == ["thumb_abc123_1_score95.png"]
        assert "thumbnail 2 not saved" in result.output


class TestDeleteAndInfo:
    """Tests for delete and info commands."""

    def test_delete(self, runner, api):
        api.delete_pic.return_value = {"id_search": "abc123", "message": "Picture removed"}

        result = runner.invoke(cli, ["delete", "abc123", "--pic", "p1"])

        assert result.exit_code == 0
        assert "Message: Picture removed" in result.output
        api.delete_pic.assert_called_once_with("abc123", "p1")

    @pytest.mark.parametrize("args", [["delete", "abc123"], ["delete", "--pic", "p1"], ["delete"]])
    def test_delete_requires_both_ids(self, runner, api, args):
        result = runner.invoke(cli, args)

        assert result.exit_code == 1
        assert "requires a search ID and --pic" in result.output
        api.MockClient.assert_not_called()

    def test_info(self, runner, api):
        api.info.return_value = {
            "faces": 987654321, "is_online": True, "remaining_credits": 12,
            "has_credits_to_search": True,
        }

        result = runner.invoke(cli, ["info"])

        assert result.exit_code == 0
        assert "Indexed Faces: 987,654,321" in result.output
        assert "Remaining Credits: 12" in result.output

    def test_raw_mode(self, runner, api):
        data = {"faces": 5, "is_online": False, "extra": [1, 2]}
        api.info.return_value = data

        result = runner.invoke(cli, ["--raw", "info"])

        assert result.exit_code == 0
        assert json.loads(result.output) == data
