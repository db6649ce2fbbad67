"""Exclusion rules for dropping unwanted events by title or UID."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from .exceptions import ConfigurationError
from .models import CalendarEvent, ExclusionRuleConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExclusionRule:
    """A single exclusion pattern.

    Plain-string rules match a case-insensitive substring of the title or the
    exact event UID. Regex rules are searched in the title only.
    """

    pattern: str
    case_sensitive: bool = False
    regex: bool = False

    def __post_init__(self) -> None:
        if self.regex:
            try:
                re.compile(self.pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid exclusion regex {self.pattern!r}: {e}") from e

    @classmethod
    def from_config(cls, entry: str | dict | ExclusionRuleConfig) -> ExclusionRule:
        if isinstance(entry, dict):
            entry = ExclusionRuleConfig.model_validate(entry)
        if isinstance(entry, ExclusionRuleConfig):
            return cls(entry.filter_by, case_sensitive=entry.case_sensitive, regex=entry.regex)
        return cls(str(entry))

    def matches(self, event: CalendarEvent) -> bool:
        if not self.pattern:
            return False

        if self.regex:
            flags = 0 if self.case_sensitive else re.IGNORECASE
            return re.search(self.pattern, event.title, flags) is not None

        if event.uid is not None and event.uid == self.pattern:
            return True

        if self.case_sensitive:
            return self.pattern in event.title
        return self.pattern.lower() in event.title.lower()


class EventExcluder:
    """Predicate over a fixed set of exclusion rules."""

    def __init__(self, entries: Iterable[str | dict | ExclusionRuleConfig] = ()):
        self.rules = tuple(ExclusionRule.from_config(entry) for entry in entries)

    def is_excluded(self, event: CalendarEvent) -> bool:
        for rule in self.rules:
            if rule.matches(event):
                logger.debug("Excluded event %r by rule %r", event.title, rule.pattern)
                return True
        return False

    def apply(self, events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
        """Return the events no rule matches, in input order."""
        return [event for event in events if not self.is_excluded(event)]
