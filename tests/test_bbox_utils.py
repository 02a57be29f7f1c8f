from __future__ import annotations

import pytest

from auto_continue.bbox import BBox, image_box_to_screen, roi_from_percent


def test_roi_from_percent_adds_monitor_offset() -> None:
    mon = {"left": 100, "top": 200, "width": 800, "height": 600}
    bbox = roi_from_percent(mon, {"left": 50, "top": 10, "width": 25, "height": 50})
    assert bbox == BBox(left=500, top=260, width=200, height=300)


def test_roi_from_percent_defaults_to_whole_monitor() -> None:
    mon = {"left": -1920, "top": 0, "width": 1920, "height": 1080}
    assert roi_from_percent(mon, None) == BBox(-1920, 0, 1920, 1080)


def test_roi_from_percent_clamps_overflow() -> None:
    mon = {"left": 0, "top": 0, "width": 1000, "height": 500}
    bbox = roi_from_percent(mon, {"left": 80, "top": 0, "width": 50, "height": 100})
    assert bbox.left == 800
    assert bbox.width == 200


def test_clamp_to_screen() -> None:
    screen = BBox(100, 200, 50, 60)
    assert BBox(100, 200, 80, 90).clamp_to(screen) == BBox(100, 200, 50, 60)
    assert BBox(90, 190, 5, 5).clamp_to(screen) == BBox(100, 200, 1, 1)
    assert BBox(1, 2, 3, 4).clamp_to(BBox(0, 0, 0, 0)) == BBox(1, 2, 3, 4)


def test_image_box_to_screen_undoes_upscale_and_offset() -> None:
    box = image_box_to_screen((200, 100, 80, 40), origin=BBox(1000, 50, 400, 400), scale=2.0)
    assert box == BBox(1100, 100, 40, 20)
    assert box.center == (1120, 110)


def test_image_box_to_screen_rejects_empty() -> None:
    with pytest.raises(ValueError):
        image_box_to_screen((0, 0, 0, 10))


def test_bbox_from_mapping() -> None:
    assert BBox.from_mapping(None) is None
    assert BBox.from_mapping({"left": "5", "top": 6, "width": 0, "height": 3}) == BBox(5, 6, 1, 3)
    assert BBox.from_mapping({"left": "x"}) is None
