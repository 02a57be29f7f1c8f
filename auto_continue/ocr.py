from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

try:
    import numpy as np  # type: ignore
except Exception:
    np = None

try:
    import cv2  # type: ignore
except Exception:
    cv2 = None

try:
    import pytesseract  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    pytesseract = None

from .bbox import BBox, image_box_to_screen
from .prompts import OCR_PROMPT_PATTERNS, ButtonLabelMatcher, PromptMatcher
from .results import TargetLocation


logger = logging.getLogger("auto_continue.ocr")

# Line-level hits are what a button label looks like; a lone word inside a
# longer sentence is weaker evidence.
_WORD_FALLBACK_WEIGHT = 0.6


class TargetLocator:
    """Finds a "Continue"-style control in a captured image with Tesseract.

    Config keys (the ``ocr`` section of auto_continue.json):
      - tesseract_cmd: path to the tesseract binary (optional)
      - tesseract_psm: page segmentation mode (default 11, sparse text)
      - upscale: resize factor applied before recognition (default 2.0)
      - min_confidence: word confidence floor, 0-100 (default 40)
      - max_label_words: longest line still treated as a button label (default 3)
      - button_patterns: regexes overriding the default button labels
      - require_prompt: only look for a control when a stop prompt is on screen (default true)
      - prompt_patterns: regexes overriding the on-screen prompt phrases
    """

    def __init__(self, cfg: Optional[Dict[str, Any]] = None):
        self.cfg = cfg or {}
        self.upscale = max(1.0, float(self.cfg.get("upscale", 2.0)))
        self.min_confidence = float(self.cfg.get("min_confidence", 40))
        self.max_label_words = max(1, int(self.cfg.get("max_label_words", 3)))
        psm = self.cfg.get("tesseract_psm", 11)
        self._tess_config = f"--psm {int(psm)}" if psm is not None else ""
        self.labels = ButtonLabelMatcher(self.cfg.get("button_patterns"))
        self.require_prompt = bool(self.cfg.get("require_prompt", True))
        self.prompts = PromptMatcher(
            self.cfg.get("prompt_patterns") or OCR_PROMPT_PATTERNS,
            extra=self.cfg.get("extra_prompt_patterns"),
        )

        try:
            if pytesseract is not None:
                cmd = str(self.cfg.get("tesseract_cmd") or "").strip()
                if cmd:
                    pytesseract.pytesseract.tesseract_cmd = cmd
        except Exception:
            # Misconfiguration surfaces later as a recognition error.
            logger.warning("could not apply tesseract_cmd", exc_info=True)

    def available(self) -> bool:
        return pytesseract is not None

    def _prepare(self, image: Any) -> Tuple[Any, float]:
        """Grayscale + upscale; small UI fonts recognize much better enlarged."""
        scale = self.upscale
        if cv2 is not None and np is not None:
            arr = np.array(image.convert("RGB"))
            gray = cv2.cvtColor(arr, cv2.COLOR_RGB2GRAY)
            if scale != 1.0:
                gray = cv2.resize(gray, None, fx=scale, fy=scale, interpolation=cv2.INTER_CUBIC)
            return gray, scale
        gray_img = image.convert("L")
        if scale != 1.0:
            w, h = gray_img.size
            gray_img = gray_img.resize((int(w * scale), int(h * scale)))
        return gray_img, scale

    def _image_to_data(self, prepared: Any) -> Dict[str, List[Any]]:
        if pytesseract is None:
            raise RuntimeError("pytesseract is not installed")
        return pytesseract.image_to_data(prepared, config=self._tess_config, output_type=pytesseract.Output.DICT)

    def read_text(self, image: Any) -> str:
        if pytesseract is None or image is None:
            return ""
        prepared, _ = self._prepare(image)
        return pytesseract.image_to_string(prepared, config=self._tess_config) or ""

    def locate_target(self, image: Any, origin: Optional[BBox] = None) -> Optional[TargetLocation]:
        """Return the best continuation control in `image`, or None.

        Raises when the OCR engine itself fails; callers treat that as a
        pipeline exception.
        """
        if image is None:
            return None
        prepared, scale = self._prepare(image)
        data = self._image_to_data(prepared)
        return self.locate_in_words(data, origin=origin, scale=scale)

    def locate_in_words(
        self,
        data: Mapping[str, List[Any]],
        origin: Optional[BBox] = None,
        scale: float = 1.0,
    ) -> Optional[TargetLocation]:
        """Pick a target from Tesseract ``image_to_data`` output (dict form).

        The recognized text must show a stop prompt first; a "Continue" label
        alone is not enough. Labels outside the prompt sentence are preferred
        over a word inside it, and among those the one closest to the prompt
        wins, then the most confident.
        """
        words = _collect_words(data, self.min_confidence)
        if not words:
            return None

        lines = _reading_order(_group_lines(words))
        prompt_box: Optional[Tuple[int, int, int, int]] = None
        if self.require_prompt:
            prompt_words = self._prompt_words(lines)
            if not prompt_words:
                logger.debug("no stop prompt in recognized text", extra={"words": len(words)})
                return None
            prompt_box = _union([w["box"] for w in prompt_words])
            in_prompt = {id(w) for w in prompt_words}
        else:
            in_prompt = set()

        # (rank, conf, box, text); lower rank is stronger evidence.
        candidates: List[Tuple[int, float, Tuple[int, int, int, int], str]] = []
        for line in lines:
            text = " ".join(w["text"] for w in line)
            if len(line) > self.max_label_words or not self.labels.matches(text):
                continue
            if any(id(w) in in_prompt for w in line):
                continue
            conf = sum(w["conf"] for w in line) / len(line)
            candidates.append((0, conf, _union([w["box"] for w in line]), text))

        if not candidates:
            for w in words:
                if self.labels.matches(w["text"]):
                    rank = 2 if id(w) in in_prompt else 1
                    candidates.append((rank, w["conf"] * _WORD_FALLBACK_WEIGHT, w["box"], w["text"]))

        if not candidates:
            return None

        def _key(c: Tuple[int, float, Tuple[int, int, int, int], str]) -> Tuple[int, float, float]:
            return c[0], _distance(c[2], prompt_box), -c[1]

        _, conf, box, text = min(candidates, key=_key)
        screen = image_box_to_screen(box, origin=origin, scale=scale)
        cx, cy = screen.center
        return TargetLocation(
            x=cx,
            y=cy,
            width=screen.width,
            height=screen.height,
            confidence=round(max(0.0, min(1.0, conf / 100.0)), 3),
            text=text,
        )

    def _prompt_words(self, lines: List[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """Words covered by the latest stop prompt in the recognized text."""
        spans: List[Tuple[int, int, Dict[str, Any]]] = []
        parts: List[str] = []
        pos = 0
        for line in lines:
            for w in line:
                spans.append((pos, pos + len(w["text"]), w))
                parts.append(w["text"])
                pos += len(w["text"]) + 1
        hit = self.prompts.last_match(" ".join(parts))
        if hit is None:
            return []
        return [w for start, end, w in spans if start < hit.end and end > hit.start]


def _distance(box: Tuple[int, int, int, int], anchor: Optional[Tuple[int, int, int, int]]) -> float:
    if anchor is None:
        return 0.0
    bx, by = box[0] + box[2] / 2.0, box[1] + box[3] / 2.0
    ax, ay = anchor[0] + anchor[2] / 2.0, anchor[1] + anchor[3] / 2.0
    return math.hypot(bx - ax, by - ay)


def _reading_order(lines: List[List[Dict[str, Any]]]) -> List[List[Dict[str, Any]]]:
    ordered = [sorted(line, key=lambda w: w["box"][0]) for line in lines]
    return sorted(ordered, key=lambda line: (min(w["box"][1] for w in line), line[0]["box"][0]))


def _to_float(v: Any, default: float = -1.0) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return default


def _collect_words(data: Mapping[str, List[Any]], min_conf: float) -> List[Dict[str, Any]]:
    texts = list(data.get("text") or [])
    out: List[Dict[str, Any]] = []
    for i, raw in enumerate(texts):
        text = str(raw or "").strip()
        if not text:
            continue
        conf = _to_float(_at(data, "conf", i))
        if conf < min_conf:
            continue
        try:
            box = (
                int(_at(data, "left", i)),
                int(_at(data, "top", i)),
                int(_at(data, "width", i)),
                int(_at(data, "height", i)),
            )
        except (TypeError, ValueError):
            continue
        if box[2] <= 0 or box[3] <= 0:
            continue
        key = (_at(data, "block_num", i, 0), _at(data, "par_num", i, 0), _at(data, "line_num", i, i))
        out.append({"text": text, "conf": conf, "box": box, "line": key})
    return out


def _at(data: Mapping[str, List[Any]], key: str, i: int, default: Any = None) -> Any:
    col = data.get(key)
    if col is None or i >= len(col):
        return default
    return col[i]


def _group_lines(words: List[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
    lines: Dict[Any, List[Dict[str, Any]]] = {}
    for w in words:
        lines.setdefault(w["line"], []).append(w)
    return list(lines.values())


def _union(boxes: List[Tuple[int, int, int, int]]) -> Tuple[int, int, int, int]:
    x0 = min(b[0] for b in boxes)
    y0 = min(b[1] for b in boxes)
    x1 = max(b[0] + b[2] for b in boxes)
    y1 = max(b[1] + b[3] for b in boxes)
    return x0, y0, x1 - x0, y1 - y0
