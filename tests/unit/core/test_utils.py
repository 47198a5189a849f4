from unittest.mock import patch

import pytest

from core.utils import ask_user, path_slug


class TestAskUser:
    """Test suite for ask_user function."""

    @patch("builtins.input", return_value="")
    @patch("builtins.print")
    def test_ask_user_returns_input(self, mock_print, mock_input):
        """Test that ask_user prints the prompt and returns user input."""
        prompt = "Prepare the page, then press Enter: "
        result = ask_user(prompt)

        mock_print.assert_called_once_with(prompt, end="")
        mock_input.assert_called_once()
        assert result == ""


class TestPathSlug:
    """Test suite for path_slug function."""

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://react.dev/", ""),
            ("https://react.dev", ""),
            ("https://react.dev/?uwu=1", ""),
            ("https://react.dev/learn", "learn"),
            ("https://react.dev/learn/thinking-in.react?x=1", "learn/thinking-in-react"),
            ("https://example.com/a b/c%20d/", "a-b/c-20d"),
            ("https://example.com/docs/v1.2/", "docs/v1-2"),
        ],
    )
    def test_slug(self, url, expected):
        assert path_slug(url) == expected

    def test_slug_has_no_unsafe_characters(self):
        slug = path_slug("https://example.com/weird:path*with?query#frag")
        assert all(ch.isalnum() or ch in "_/-" for ch in slug)
