import json
from datetime import datetime

from grabber.models import RarbgSearchResult, TorrentRecord
from grabber.persistence import magnet_key, merge_links, merge_magnet_file, task_id, write_json

A = [
    "magnet:?xt=urn:btih:AAA&dn=Alpha&tr=udp://one",
    "magnet:?xt=urn:btih:BBB&dn=Beta&tr=udp://one",
]
B = [
    "magnet:?xt=urn:btih:BBB&dn=Beta&tr=udp://two",
    "magnet:?xt=urn:btih:CCC&dn=Gamma&tr=udp://two",
]


def test_magnet_key_strips_from_first_ampersand():
    x = "magnet:?xt=urn:btih:ABC&dn=Foo&tr=x"
    y = "magnet:?xt=urn:btih:ABC&dn=Foo&tr=y"
    assert magnet_key(x) == magnet_key(y) == "magnet:?xt=urn:btih:ABC"
    assert list(merge_links([x], [y]).values()) == [y]


def test_merge_keeps_first_position_and_latest_value():
    merged = merge_links(A, B)
    assert list(merged.values()) == [A[0], B[0], B[1]]


def test_merging_the_same_links_twice_is_idempotent(tmp_path):
    path = tmp_path / "search.txt"
    merge_magnet_file(path, A)
    once = path.read_text(encoding="utf-8")
    merge_magnet_file(path, A)
    assert path.read_text(encoding="utf-8") == once


def test_merge_order_a_b_a(tmp_path):
    first = tmp_path / "first.txt"
    merge_magnet_file(first, A)
    merge_magnet_file(first, B)

    second = tmp_path / "second.txt"
    merge_magnet_file(second, A)
    merge_magnet_file(second, B)
    merge_magnet_file(second, A)

    keys = lambda p: [magnet_key(line) for line in p.read_text(encoding="utf-8").split("\n")]
    assert keys(first) == keys(second)
    assert len(second.read_text(encoding="utf-8").split("\n")) == 3


def test_blank_lines_are_ignored(tmp_path):
    path = tmp_path / "m.txt"
    path.write_text("\n" + A[0] + "\n\n", encoding="utf-8")
    merged = merge_magnet_file(path, [])
    assert list(merged.values()) == [A[0]]


def test_task_id_format():
    assert task_id(datetime(2021, 2, 15, 9, 5, 7)) == "20210215090507"


def test_write_json_uses_camel_case(tmp_path):
    result = RarbgSearchResult(
        url="https://rarbgprx.org/torrents.php?search=x",
        torrents=[TorrentRecord(url="https://rarbgprx.org/torrent/1", magnet_link="magnet:?xt=1", torrent_file="https://t")],
    )
    path = write_json(tmp_path / "out" / "r.json", result)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["torrents"][0]["magnetLink"] == "magnet:?xt=1"
    assert data["torrents"][0]["torrentFile"] == "https://t"
