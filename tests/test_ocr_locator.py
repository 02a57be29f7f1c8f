from __future__ import annotations

from typing import Any, Dict, List

from auto_continue.bbox import BBox
from auto_continue.ocr import TargetLocator


def _words(*rows) -> Dict[str, List[Any]]:
    """Build image_to_data-style columns from (text, conf, left, top, w, h, line) rows."""
    data: Dict[str, List[Any]] = {
        k: [] for k in ("text", "conf", "left", "top", "width", "height", "block_num", "par_num", "line_num")
    }
    for text, conf, left, top, w, h, line in rows:
        data["text"].append(text)
        data["conf"].append(conf)
        data["left"].append(left)
        data["top"].append(top)
        data["width"].append(w)
        data["height"].append(h)
        data["block_num"].append(1)
        data["par_num"].append(1)
        data["line_num"].append(line)
    return data


def _sentence(text: str, line: int, top: int = 0, conf: float = 90) -> List[tuple]:
    return [(word, conf, i * 50, top, 40, 10, line) for i, word in enumerate(text.split())]


# Prompt box spans x 0..440, y 0..10 (centre 220, 5).
STOP = _sentence("We default stop the agent after 25 tool calls", line=0)


def test_single_button_label_is_located() -> None:
    loc = TargetLocator().locate_in_words(_words(*STOP, ("Continue", 91, 100, 40, 60, 20, 1)))
    assert loc is not None
    assert (loc.x, loc.y) == (130, 50)
    assert loc.text == "Continue"
    assert loc.confidence == 0.91


def test_button_without_prompt_on_screen_is_ignored() -> None:
    data = _words(("Continue", 91, 100, 40, 60, 20, 1), ("Resume", 99, 300, 40, 60, 20, 2))
    assert TargetLocator().locate_in_words(data) is None


def test_prompt_check_can_be_disabled() -> None:
    data = _words(("Continue", 55, 0, 0, 50, 10, 1), ("Resume", 95, 300, 300, 50, 10, 2))
    loc = TargetLocator({"require_prompt": False}).locate_in_words(data)
    assert loc is not None
    assert loc.text == "Resume"


def test_multi_word_label_uses_union_box() -> None:
    data = _words(
        *STOP,
        ("Yes,", 80, 10, 30, 30, 20, 2),
        ("continue", 90, 45, 32, 70, 18, 2),
    )
    loc = TargetLocator().locate_in_words(data)
    assert loc is not None
    assert loc.text == "Yes, continue"
    assert (loc.width, loc.height) == (105, 20)
    assert loc.confidence == 0.85


def test_button_nearest_the_prompt_wins() -> None:
    data = _words(
        *STOP,
        ("Continue", 55, 200, 20, 50, 10, 1),
        ("Resume", 95, 300, 300, 50, 10, 2),
    )
    loc = TargetLocator().locate_in_words(data)
    assert loc is not None
    assert loc.text == "Continue"


def test_word_inside_prompt_is_last_resort() -> None:
    sentence = _sentence("Please ask the agent to continue manually", line=1)
    loc = TargetLocator().locate_in_words(_words(*sentence))
    assert loc is not None
    assert loc.text == "continue"
    assert loc.confidence == 0.54

    loc = TargetLocator().locate_in_words(_words(*sentence, ("Resume", 70, 0, 40, 60, 20, 2)))
    assert loc is not None
    assert loc.text == "Resume"


def test_low_confidence_and_blank_words_are_ignored() -> None:
    data = _words(
        *STOP,
        ("Continue", 12, 0, 30, 50, 10, 1),
        ("", 95, 0, 50, 50, 10, 2),
        ("Continue", "-1", 0, 70, 50, 10, 3),
    )
    assert TargetLocator().locate_in_words(data) is None


def test_no_label_returns_none() -> None:
    data = _words(*STOP, ("Cancel", 99, 0, 30, 40, 10, 1), ("Undo", 99, 50, 30, 40, 10, 1))
    assert TargetLocator().locate_in_words(data) is None
    assert TargetLocator().locate_in_words({}) is None


def test_coordinates_map_back_to_screen() -> None:
    data = _words(*STOP, ("Continue", 88, 400, 200, 120, 40, 1))
    loc = TargetLocator().locate_in_words(data, origin=BBox(1000, 100, 800, 600), scale=2.0)
    assert loc is not None
    assert (loc.x, loc.y) == (1230, 210)
    assert (loc.width, loc.height) == (60, 20)


def test_custom_button_patterns_and_thresholds() -> None:
    locator = TargetLocator({"button_patterns": [r"^go on$"], "min_confidence": 70, "max_label_words": 2})
    data = _words(*STOP, ("go", 75, 0, 30, 20, 10, 1), ("on", 75, 25, 30, 20, 10, 1))
    loc = locator.locate_in_words(data)
    assert loc is not None
    assert loc.text == "go on"
    assert locator.locate_in_words(_words(*STOP, ("Continue", 99, 0, 30, 20, 10, 1))) is None


def test_custom_and_extra_prompt_patterns() -> None:
    paused = _sentence("Agent paused waiting", line=0)
    button = ("Resume", 90, 0, 40, 60, 20, 1)
    assert TargetLocator({"prompt_patterns": ["agent paused"]}).locate_in_words(_words(*paused, button)) is not None
    assert TargetLocator({"prompt_patterns": ["agent paused"]}).locate_in_words(_words(*STOP, button)) is None
    assert TargetLocator({"extra_prompt_patterns": ["agent paused"]}).locate_in_words(_words(*paused, button)) is not None


def test_locate_target_without_image() -> None:
    assert TargetLocator().locate_target(None) is None
