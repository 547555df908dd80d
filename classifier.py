"""Map a calendar event to the court(s) it occupies."""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from models import COURTS, RawEvent, Verdict

logger = logging.getLogger(__name__)

COURT_MARKERS = {
    1: ("quadra 1", "quadra1", "q1"),
    2: ("quadra 2", "quadra2", "q2"),
}


@dataclass(frozen=True)
class KeywordRule:
    pattern: str
    court: int


DEFAULT_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(r"futevolei|futvolei|futev[oó]lei", 1),
    KeywordRule(r"v[oó]lei(?!.*fute)", 2),
    KeywordRule(r"beach\s*tennis|\bbt\b", 2),
)


@dataclass(frozen=True)
class ClassifierConfig:
    rules: Tuple[KeywordRule, ...] = DEFAULT_RULES
    # Earlier rule: an event that names no court blocks the whole venue
    unknown_blocks_both: bool = False

    @classmethod
    def from_rules(cls, rules: Iterable[dict], unknown_blocks_both: bool = False) -> "ClassifierConfig":
        parsed = []
        for rule in rules:
            try:
                parsed.append(KeywordRule(pattern=str(rule["pattern"]), court=int(rule["court"])))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed keyword rule: %r", rule)
        return cls(rules=tuple(parsed), unknown_blocks_both=unknown_blocks_both)

    @classmethod
    def from_json(cls, raw: Optional[str], unknown_blocks_both: bool = False) -> "ClassifierConfig":
        """Replace the default rules wholesale with a JSON list, if one is given."""
        if raw:
            try:
                data = json.loads(raw)
            except ValueError as exc:
                logger.warning("COURT_KEYWORDS_JSON is not valid JSON, keeping defaults: %s", exc)
            else:
                if isinstance(data, list) and data:
                    return cls.from_rules(data, unknown_blocks_both=unknown_blocks_both)
                logger.warning("COURT_KEYWORDS_JSON must be a non-empty list, keeping defaults")
        return cls(unknown_blocks_both=unknown_blocks_both)


@dataclass
class EventClassifier:
    config: ClassifierConfig = field(default_factory=ClassifierConfig)

    def __post_init__(self):
        self._compiled = []
        for rule in self.config.rules:
            if rule.court not in COURTS:
                logger.debug("Ignoring rule %r: court out of range", rule.pattern)
                continue
            try:
                self._compiled.append((re.compile(rule.pattern, re.IGNORECASE), rule.court))
            except re.error:
                logger.debug("Ignoring invalid rule pattern %r", rule.pattern)

    def classify(self, event: RawEvent) -> Verdict:
        text = event.text
        on_q1 = any(marker in text for marker in COURT_MARKERS[1])
        on_q2 = any(marker in text for marker in COURT_MARKERS[2])

        if on_q1 and not on_q2:
            return Verdict.known(1)
        if on_q2 and not on_q1:
            return Verdict.known(2)
        if on_q1 and on_q2:
            return Verdict.known(1, 2, block_both=True)

        for pattern, court in self._compiled:
            if pattern.search(text):
                return Verdict.known(court)

        if self.config.unknown_blocks_both:
            return Verdict.known(*COURTS, block_both=True)
        return Verdict.unknown_single()
