"""
Declarative rule tables shared by the checkers.

Each checker describes its heuristics as tables of rules (regular expressions
or keyword groups, each with a penalty and severity) and evaluates them with
the helpers below, so the scoring tables can be inspected and tested on their
own.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple


@dataclass(frozen=True)
class PatternRule:
    """A regular-expression detector with a per-match penalty."""

    name: str
    pattern: Pattern[str]
    severity: str = "low"
    penalty: int = 0


@dataclass(frozen=True)
class KeywordRule:
    """A named group of lowercase keywords, matched as substrings."""

    name: str
    keywords: Tuple[str, ...]
    severity: str = "low"
    penalty: int = 0


@dataclass(frozen=True)
class PatternHit:
    rule: PatternRule
    matches: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.matches)

    @property
    def total_penalty(self) -> int:
        return self.rule.penalty * self.count


def compile_pattern(expression: str, ignore_case: bool = False) -> Pattern[str]:
    return re.compile(expression, re.IGNORECASE if ignore_case else 0)


def apply_pattern_set(text: str, rules: Sequence[PatternRule]) -> List[PatternHit]:
    """
    Runs every rule over the text, in table order.

    Returns:
        List[PatternHit]: One hit per rule with at least one match.
    """
    hits: List[PatternHit] = []
    for rule in rules:
        matches = [m.group(0) for m in rule.pattern.finditer(text)]
        if matches:
            hits.append(PatternHit(rule=rule, matches=matches))
    return hits


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring test."""
    haystack = (text or "").lower()
    return any(keyword in haystack for keyword in keywords)


def count_keywords(text: str, keywords: Iterable[str]) -> int:
    haystack = (text or "").lower()
    return sum(1 for keyword in keywords if keyword in haystack)


def match_keyword_rules(
    rules: Sequence[KeywordRule], *texts: str
) -> List[KeywordRule]:
    """All rules whose keywords occur in any of the texts, in table order."""
    return [rule for rule in rules if any(contains_any(t, rule.keywords) for t in texts)]


def first_keyword_rule(
    rules: Sequence[KeywordRule], *texts: str
) -> Optional[KeywordRule]:
    """The first rule in table order whose keywords occur in any text."""
    matched = match_keyword_rules(rules, *texts)
    return matched[0] if matched else None
