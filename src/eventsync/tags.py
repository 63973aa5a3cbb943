"""Declarative tag rules evaluated as JMESPath queries over event payloads.

Rules are configured as one string of pipe-separated ``tag,expression``
pairs::

    has-venue,venue_name|virtual,event_type_title == 'Virtual Event type'

Each rule is split on its *first* comma, so expressions may contain commas
themselves (``contains(tags, 'a,b')``).  A tag applies when its expression
evaluates to anything other than ``null`` or ``false``: empty strings, empty
lists and ``0`` all count as present.

Parsed rule sets are cached per raw configuration string; editing the setting
produces a new string and therefore a fresh parse.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import jmespath
from jmespath.parser import ParsedResult

logger = logging.getLogger(__name__)

RULE_SEPARATOR = "|"
FIELD_SEPARATOR = ","


@dataclass(frozen=True)
class TagRule:
    tag: str
    expression: str
    compiled: ParsedResult

    def matches(self, data: Mapping[str, Any]) -> bool:
        result = self.compiled.search(data)
        return result is not None and result is not False


@functools.lru_cache(maxsize=32)
def parse_tag_rules(raw: str) -> tuple[TagRule, ...]:
    """Parse *raw* into compiled rules.

    Rules missing a name or an expression are dropped with a warning.
    A syntactically invalid expression raises ``jmespath.exceptions.ParseError``.
    """
    rules: dict[str, TagRule] = {}
    for chunk in raw.split(RULE_SEPARATOR):
        if not chunk.strip():
            continue
        tag, _, expression = chunk.partition(FIELD_SEPARATOR)
        tag = tag.strip()
        expression = expression.strip()
        if not tag or not expression:
            logger.warning("Ignoring malformed tag rule %r: expected 'tag,expression'", chunk)
            continue
        rules[tag] = TagRule(tag=tag, expression=expression, compiled=jmespath.compile(expression))
    return tuple(rules.values())


class TagRuleEngine:
    """Derives tag names for a payload from the currently configured rules.

    *rules_source* is called on every evaluation so a live configuration
    store can change the rules without restarting; the parse cache keeps
    that cheap.
    """

    def __init__(self, rules_source: str | Callable[[], str | None]) -> None:
        if isinstance(rules_source, str):
            self._rules_source: Callable[[], str | None] = lambda: rules_source
        else:
            self._rules_source = rules_source

    @property
    def rules(self) -> tuple[TagRule, ...]:
        raw = self._rules_source()
        if not raw or not raw.strip():
            return ()
        return parse_tag_rules(raw)

    def extract_tags(self, data: Mapping[str, Any]) -> set[str]:
        """Return the tags whose expressions hold for *data*.

        Evaluation errors (e.g. ``jmespath.exceptions.JMESPathTypeError``)
        propagate to the caller.
        """
        return {rule.tag for rule in self.rules if rule.matches(data)}
