from __future__ import annotations

import re
from typing import Any, Iterable, List, NamedTuple, Optional, Pattern, Sequence

# Phrases an agent UI shows when it stops and waits for the user to say "continue".
DEFAULT_PROMPT_PATTERNS: Sequence[str] = (
    r"we default stop the agent after \d+ tool calls",
    r"please ask the agent to continue manually",
    r"would you like to continue",
    r"press continue to proceed",
    r"click continue to resume",
    r"do you want to continue",
    r"shall i continue",
    r"continue with the next step",
)

# Looser phrases that gate the screen scan. OCR text is noisy and only ever
# comes from the watched screen region, so partial wording is accepted there.
OCR_PROMPT_PATTERNS: Sequence[str] = (
    r"we default stop the agent after \d+ tool calls",
    r"reached.*tool call limit",
    r"25 tool calls",
    r"tool call limit",
    r"please ask.*continue manually",
)

# Labels of the control that resumes the agent (matched per OCR word or line).
CONTINUE_BUTTON_PATTERNS: Sequence[str] = (
    r"continue",
    r"resume",
    r"proceed",
    r"yes.*continue",
    r"skip.*continue",
)


class PromptHit(NamedTuple):
    pattern: str
    start: int
    end: int


def _compile(patterns: Iterable[str]) -> List[Pattern[str]]:
    out: List[Pattern[str]] = []
    for p in patterns:
        s = str(p or "").strip()
        if not s:
            continue
        try:
            out.append(re.compile(s, re.IGNORECASE))
        except re.error:
            # Treat an invalid user-supplied regex as a literal phrase.
            out.append(re.compile(re.escape(s), re.IGNORECASE))
    return out


class PromptMatcher:
    """Case-insensitive recognizer for "waiting for continuation" text.

    Stateless once constructed; safe to call on every text-change event.
    """

    def __init__(self, patterns: Optional[Iterable[str]] = None, extra: Optional[Iterable[str]] = None):
        base = list(patterns) if patterns is not None else list(DEFAULT_PROMPT_PATTERNS)
        base.extend(extra or [])
        self._patterns = _compile(base)

    @property
    def patterns(self) -> List[str]:
        return [p.pattern for p in self._patterns]

    def first_match(self, text: Any) -> Optional[str]:
        if not isinstance(text, str) or not text:
            return None
        for pat in self._patterns:
            if pat.search(text):
                return pat.pattern
        return None

    def matches(self, text: Any) -> bool:
        return self.first_match(text) is not None

    def last_match(self, text: Any) -> Optional[PromptHit]:
        """The occurrence that ends latest in `text`, across all patterns."""
        if not isinstance(text, str) or not text:
            return None
        best: Optional[PromptHit] = None
        for pat in self._patterns:
            for m in pat.finditer(text):
                if best is None or m.end() > best.end:
                    best = PromptHit(pat.pattern, m.start(), m.end())
        return best


class ButtonLabelMatcher(PromptMatcher):
    def __init__(self, patterns: Optional[Iterable[str]] = None):
        super().__init__(patterns if patterns is not None else CONTINUE_BUTTON_PATTERNS)
