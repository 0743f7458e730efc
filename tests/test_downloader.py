import httpx

from grabber.downloader import download_all, filename_for


def _client():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("missing.jpg"):
            return httpx.Response(404)
        return httpx.Response(200, content=b"bytes:" + request.url.path.encode())

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_filename_for():
    assert filename_for("https://cdn.example/a/b/photo.jpg?stp=1&_nc=2") == "photo.jpg"
    assert filename_for("https://cdn.example/v/clip%20one.mp4") == "clip one.mp4"
    assert filename_for("https://cdn.example/") == "index"


async def test_failed_urls_do_not_stop_the_rest(tmp_path):
    async with _client() as client:
        report = await download_all(
            tmp_path / "out",
            [
                {"url": "https://cdn.example/one.jpg"},
                {"url": "https://cdn.example/missing.jpg"},
                {"url": ""},
                {"url": "https://cdn.example/two.mp4"},
            ],
            client=client,
        )

    assert [p.name for p in report.downloaded] == ["one.jpg", "two.mp4"]
    assert list(report.failed) == ["https://cdn.example/missing.jpg"]
    assert (tmp_path / "out" / "one.jpg").read_bytes() == b"bytes:/one.jpg"
    assert not list((tmp_path / "out").glob("*.part"))


async def test_existing_files_are_skipped(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    (out / "one.jpg").write_bytes(b"kept")

    async with _client() as client:
        report = await download_all(out, [{"url": "https://cdn.example/one.jpg"}], client=client)

    assert report.downloaded == []
    assert report.skipped == [out / "one.jpg"]
    assert (out / "one.jpg").read_bytes() == b"kept"
