from grabber.extractor import best_image, extract, flatten, flatten_all
from grabber.models import TimelineNode


def _resource(width, height, src=None):
    return {"src": src or f"https://cdn/{width}x{height}.jpg", "config_width": width, "config_height": height}


def _node(shortcode, resources=None, **extra):
    raw = {"__typename": "GraphImage", "id": shortcode, "shortcode": shortcode}
    if resources is not None:
        raw["display_resources"] = resources
    raw.update(extra)
    return TimelineNode.model_validate(raw)


def test_best_image_picks_largest_area():
    node = _node("a", [_resource(100, 100), _resource(150, 80)])
    image = best_image(node)
    assert (image.width, image.height) == (150, 80)
    assert image.src == "https://cdn/150x80.jpg"


def test_best_image_first_seen_wins_on_equal_area():
    node = _node("a", [_resource(100, 100, "first"), _resource(200, 50, "second"), _resource(50, 50)])
    assert best_image(node).src == "first"


def test_best_image_falls_back_to_display_url():
    node = _node("a", display_url="https://cdn/display.jpg", dimensions={"width": 1080, "height": 1350})
    image = best_image(node)
    assert image.src == "https://cdn/display.jpg"
    assert (image.width, image.height) == (1080, 1350)


def test_video_node_yields_image_and_video():
    node = _node(
        "v",
        [_resource(640, 640)],
        __typename="GraphVideo",
        is_video=True,
        video_url="https://cdn/v.mp4",
    )
    extraction = extract(node)
    assert extraction.files == ["https://cdn/640x640.jpg", "https://cdn/v.mp4"]
    assert extraction.video.kind == "video"
    assert extraction.children == []


def test_node_without_children_has_single_asset_list():
    extraction = extract(_node("a", [_resource(10, 10)]))
    assert extraction.files == ["https://cdn/10x10.jpg"]
    assert extraction.children == []


def test_malformed_resources_do_not_stop_the_node():
    node = _node(
        "bad",
        [{"src": "https://cdn/x.jpg", "config_width": None, "config_height": 10}, _resource(5, 5)],
        is_video=True,
        video_url="https://cdn/bad.mp4",
    )
    extraction = extract(node)
    assert extraction.best_image is None
    assert extraction.files == ["https://cdn/bad.mp4"]


def test_sidecar_children_are_flattened_in_pre_order():
    children = [
        {"node": {"__typename": "GraphImage", "shortcode": f"c{i}", "display_resources": [_resource(i + 1, 1)]}}
        for i in range(3)
    ]
    parent = _node(
        "p",
        [_resource(1000, 1000)],
        __typename="GraphSidecar",
        edge_sidecar_to_children={"edges": children},
    )
    nodes, files = flatten(parent)
    assert [n.shortcode for n in nodes] == ["p", "c0", "c1", "c2"]
    assert files == [
        "https://cdn/1000x1000.jpg",
        "https://cdn/1x1.jpg",
        "https://cdn/2x1.jpg",
        "https://cdn/3x1.jpg",
    ]


def test_flatten_is_repeatable():
    parent = _node(
        "p",
        [_resource(2, 2)],
        edge_sidecar_to_children={"edges": [{"node": {"shortcode": "c", "display_url": "https://cdn/c.jpg"}}]},
    )
    first = flatten_all([parent, _node("q", [_resource(3, 3)])])
    second = flatten_all([parent, _node("q", [_resource(3, 3)])])
    assert [n.shortcode for n in first[0]] == ["p", "c", "q"]
    assert first[1] == second[1]
