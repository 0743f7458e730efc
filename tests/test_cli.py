import json
import logging

import pytest

from grabber.cli import build_parser, main
from grabber.cookie_store import CookieStore


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GRABBER_DATA_DIR", str(tmp_path / "data"))
    yield tmp_path / "data"
    root.handlers[:] = handlers
    root.setLevel(level)


def test_parser_flags():
    args = build_parser().parse_args(["https://www.instagram.com/someuser/", "--headless", "--clock", "250"])
    assert args.target == "https://www.instagram.com/someuser/"
    assert args.headless is True
    assert args.clock == 250
    assert args.abort_on_error is False


def test_set_persists_values(data_dir, capsys):
    assert main(["set", "proxy", "127.0.0.1:1080"]) == 0
    assert main(["set", "headless", "true"]) == 0
    assert json.loads((data_dir / "config.json").read_text(encoding="utf-8")) == {
        "proxy": "127.0.0.1:1080",
        "headless": True,
    }
    assert main(["set", "proxy"]) == 0
    assert json.loads((data_dir / "config.json").read_text(encoding="utf-8")) == {"headless": True}


def test_set_rejects_unknown_keys(data_dir, capsys):
    assert main(["set", "color", "blue"]) == 2
    assert "usage" in capsys.readouterr().out


def test_clear_cookies(data_dir, capsys):
    store = CookieStore.for_site(data_dir, "rarbg")
    store.save([{"name": "a", "value": "b"}])
    assert main(["clear-cookies", "rarbg"]) == 0
    assert not store.exists()
    assert main(["clear-cookies", "nowhere"]) == 2


def test_unsupported_url_exits_with_2(data_dir):
    assert main(["https://example.com/whatever"]) == 2
