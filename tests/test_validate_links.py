"""
Tests for external link checks. Network access is patched out.
"""

import sys
from unittest.mock import MagicMock, patch

import pytest
import requests

import validate_links
from post_loader import load_post
from validate_links import check_link, extract_links, is_broken, prose_text


def response(status):
    r = MagicMock()
    r.status_code = status
    return r


class TestExtractLinks:
    def test_markdown_links_and_trailing_punctuation(self):
        text = (
            "See the [guide](https://angular.io/guide/elements).\n"
            "Also https://jwt.io/introduction/, and https://jwt.io/introduction/ again.\n"
        )
        assert extract_links(text) == ["https://angular.io/guide/elements", "https://jwt.io/introduction/"]

    def test_balanced_parentheses_kept(self):
        text = "[x](https://en.wikipedia.org/wiki/JSON_(disambiguation))"
        assert extract_links(text) == ["https://en.wikipedia.org/wiki/JSON_(disambiguation)"]

    def test_inline_code_backtick_terminates(self):
        assert extract_links("call `https://localhost:5001/api` now") == ["https://localhost:5001/api"]


class TestProseText:
    def test_fenced_urls_are_ignored(self, write_post):
        body = (
            "Read https://docs.microsoft.com/aspnet first.\n"
            "\n"
            "```console\n"
            "$ curl https://localhost:5001/api/orders\n"
            "```\n"
            "Then https://jwt.io/.\n"
        )
        post = load_post(write_post(body))
        assert extract_links(prose_text(post)) == ["https://docs.microsoft.com/aspnet", "https://jwt.io/"]

    def test_unclosed_fence_hides_rest(self, write_post):
        post = load_post(write_post("https://a.example/\n```bash\ncurl https://b.example/\n"))
        assert extract_links(prose_text(post)) == ["https://a.example/"]


class TestCheckLink:
    def test_head_ok(self):
        session = MagicMock()
        session.head.return_value = response(200)
        assert check_link("https://jwt.io/", session) == ("https://jwt.io/", 200)
        session.get.assert_not_called()

    def test_falls_back_to_get(self):
        session = MagicMock()
        session.head.return_value = response(405)
        session.get.return_value = response(200)
        assert check_link("https://angular.io/", session) == ("https://angular.io/", 200)
        session.get.assert_called_once()

    def test_request_exception_becomes_string(self):
        session = MagicMock()
        session.head.side_effect = requests.ConnectionError("connection refused")
        url, status = check_link("https://down.example/", session)
        assert status == "connection refused"
        assert is_broken(status)

    def test_uses_requests_module_without_session(self):
        with patch.object(validate_links.requests, "head", return_value=response(200)) as head:
            assert check_link("https://jwt.io/") == ("https://jwt.io/", 200)
        assert head.call_args.kwargs["allow_redirects"] is True

    @pytest.mark.parametrize("status,broken", [(200, False), (301, False), (404, True), (500, True), ("timeout", True)])
    def test_is_broken(self, status, broken):
        assert is_broken(status) is broken


class TestValidateLinks:
    def test_reports_broken_links_per_post(self, write_post):
        first = load_post(write_post("[ok](https://ok.example/) and [gone](https://gone.example/)\n"))
        second = load_post(write_post("Again https://gone.example/\n", name="2019-03-11-second.md"))

        def fake_check(url, session=None, timeout=None):
            return url, 404 if "gone" in url else 200

        with patch.object(validate_links, "check_link", side_effect=fake_check):
            broken = validate_links.validate_links([first, second], workers=2)

        assert broken == [
            ("2019-03-10-a-valid-post.md", "https://gone.example/", 404),
            ("2019-03-11-second.md", "https://gone.example/", 404),
        ]

    def test_main_exit_codes(self, write_post, posts_dir, monkeypatch, capsys):
        write_post("[gone](https://gone.example/)\n")
        monkeypatch.setattr(sys, "argv", ["validate_links.py", "--posts-dir", str(posts_dir)])

        with patch.object(validate_links, "check_link", side_effect=lambda u, session=None, timeout=None: (u, 404)):
            with pytest.raises(SystemExit) as exc:
                validate_links.main()

        assert exc.value.code == 1
        out = capsys.readouterr().out
        assert "Broken/Suspect Links: 1" in out
        assert "[X] Status 404 | 2019-03-10-a-valid-post.md | https://gone.example/" in out

    def test_main_healthy(self, write_post, posts_dir, monkeypatch, capsys):
        write_post("[ok](https://ok.example/)\n")
        monkeypatch.setattr(sys, "argv", ["validate_links.py", "--posts-dir", str(posts_dir)])

        with patch.object(validate_links, "check_link", side_effect=lambda u, session=None, timeout=None: (u, 200)):
            validate_links.main()

        assert "✓ All links are healthy!" in capsys.readouterr().out

    def test_workers_call_requests_without_shared_session(self, write_post):
        post = load_post(write_post("[a](https://a.example/) [b](https://b.example/)\n"))

        with patch.object(validate_links, "check_link", return_value=("x", 200)) as check:
            validate_links.validate_links([post], workers=2)

        assert check.call_count == 2
        for call in check.call_args_list:
            assert call.kwargs.get("session") is None
            assert len(call.args) == 1

    def test_main_reports_undecodable_post(self, posts_dir, monkeypatch, capsys):
        (posts_dir / "2019-03-10-binary.md").write_bytes(b"---\ntitle: \xff\n---\nhttps://a.example/\n")
        monkeypatch.setattr(sys, "argv", ["validate_links.py", "--posts-dir", str(posts_dir)])

        with patch.object(validate_links, "check_link") as check:
            validate_links.main()

        check.assert_not_called()
        assert "Found 0 unique URLs in 1 posts" in capsys.readouterr().out
