from grabber.browser import build_proxy, resolve_executable_path, safe_close
from grabber.config import Settings

from tests.fakes import FakeContext


def test_executable_path_per_platform():
    table = {"darwin": "/Applications/Chrome"}
    assert resolve_executable_path(Settings(), platform="darwin", table=table) == "/Applications/Chrome"
    assert resolve_executable_path(Settings(), platform="linux", table=table) is None
    explicit = Settings(grabber_browser_executable_path="/opt/chrome")
    assert resolve_executable_path(explicit, platform="darwin", table=table) == "/opt/chrome"


def test_build_proxy():
    assert build_proxy("") is None
    assert build_proxy("127.0.0.1:1080") == {"server": "http://127.0.0.1:1080"}
    assert build_proxy("socks5://127.0.0.1:1080") == {"server": "socks5://127.0.0.1:1080"}


async def test_safe_close_swallows_failures():
    async def broken():
        raise RuntimeError("target closed")

    await safe_close(broken(), label="broken")
    context = FakeContext()
    await safe_close(context.close(), label="context")
    assert context.closed
