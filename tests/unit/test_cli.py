"""Unit tests for the render command."""

from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from skin_preview.cli import render


class TestRenderCommand:
    """Tests for the skin-preview render command."""

    def test_render_to_stdout(self):
        """Test hydrating a skin file to stdout."""
        runner = CliRunner()
        with runner.isolated_filesystem():
            with open("skin.html", "w", encoding="utf-8") as f:
                f.write("<h1>[##_title_##]</h1>")

            with patch("skin_preview.cli.hydrate", AsyncMock(return_value="<h1>My Blog</h1>")) as mock_hydrate:
                result = runner.invoke(render, ["skin.html", "--target", "myblog", "--page", "post", "--entry", "7"])

        assert result.exit_code == 0, result.output
        assert "<h1>My Blog</h1>" in result.output
        args = mock_hydrate.await_args.args
        assert args[0] == "<h1>[##_title_##]</h1>"
        assert args[1] == "https://myblog.tistory.com"
        assert args[2] == "post"
        assert args[3] == "7"

    def test_render_to_file(self):
        """Test the --output option."""
        runner = CliRunner()
        with runner.isolated_filesystem():
            with open("skin.html", "w", encoding="utf-8") as f:
                f.write("<p></p>")

            with patch("skin_preview.cli.hydrate", AsyncMock(return_value="<p>done</p>")):
                result = runner.invoke(render, ["skin.html", "-o", "out.html"])

            assert result.exit_code == 0, result.output
            with open("out.html", encoding="utf-8") as f:
                assert f.read() == "<p>done</p>"

    def test_rejects_unknown_page(self):
        """Test the page type choice."""
        runner = CliRunner()
        with runner.isolated_filesystem():
            with open("skin.html", "w", encoding="utf-8") as f:
                f.write("")
            result = runner.invoke(render, ["skin.html", "--page", "archive"])

        assert result.exit_code != 0
