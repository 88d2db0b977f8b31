"""
Origin allow-list for cross-origin requests.

The gate decides whether a request's declared ``Origin`` may access the
API. The decision is a pure function of the origin and the configured
rules; flask-cors is given the same rules so that allowed origins get the
``Access-Control-Allow-*`` headers and denied ones get none.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Pattern, Tuple, Union

from .errors import OriginNotAllowedError

# Characters that mark a pattern as a regular expression rather than a literal
_REGEX_CHARS = set('*\\[]?$^()+{}|')


class RuleKind(Enum):
    EXACT = 'exact'
    REGEX = 'regex'
    WILDCARD = 'wildcard'


@dataclass(frozen=True)
class OriginRule:
    """
    A single allow-list entry.

    Exact rules compare case-insensitively against the whole origin.
    Regex rules are searched anywhere in the origin string, so
    ``netlify\\.app`` allows every ``*.netlify.app`` deploy preview.
    """

    pattern: str
    kind: RuleKind
    regex: Optional[Pattern] = None

    @classmethod
    def parse(cls, pattern: str) -> 'OriginRule':
        """
        Build a rule from its configured string form.

        Args:
            pattern: ``*``, a literal origin, or a regular expression

        Returns:
            OriginRule

        Raises:
            ValueError: If the pattern is empty or not a valid regex
        """
        if not pattern:
            raise ValueError('Origin rule must not be empty')
        if pattern == '*':
            return cls(pattern, RuleKind.WILDCARD)
        if _REGEX_CHARS.intersection(pattern):
            try:
                compiled = re.compile(pattern)
            except re.error as e:
                raise ValueError(f'Invalid origin pattern {pattern!r}: {e}') from e
            return cls(pattern, RuleKind.REGEX, compiled)
        return cls(pattern, RuleKind.EXACT)

    def matches(self, origin: str) -> bool:
        if self.kind is RuleKind.WILDCARD:
            return True
        if self.kind is RuleKind.REGEX:
            return self.regex.search(origin) is not None
        return origin.lower() == self.pattern.lower()

    def as_cors_origin(self) -> Union[str, Pattern]:
        """
        Express the rule in a form flask-cors matches identically.

        flask-cors anchors regexes at the start of the origin, so search
        semantics are emulated with a leading ``.*``.
        """
        if self.kind is RuleKind.WILDCARD:
            return '*'
        if self.kind is RuleKind.REGEX:
            return re.compile(f'.*(?:{self.pattern}).*')
        return re.compile(re.escape(self.pattern) + r'\Z', re.IGNORECASE)


@dataclass(frozen=True)
class OriginDecision:
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def deny(cls, origin: str) -> 'OriginDecision':
        return cls(False, f'Request from origin "{origin}" not allowed by CORS.')


ALLOW = OriginDecision(True)


class OriginGate:
    """
    Evaluates request origins against an ordered rule set.

    Usage:
        gate = OriginGate.from_patterns(settings.cors.allow_list)
        gate.check(request.headers.get('Origin'))
    """

    def __init__(self, rules: Iterable[OriginRule]):
        self._rules: Tuple[OriginRule, ...] = tuple(rules)

    @classmethod
    def from_patterns(cls, patterns: Iterable[str]) -> 'OriginGate':
        return cls(OriginRule.parse(p) for p in patterns)

    @property
    def rules(self) -> Tuple[OriginRule, ...]:
        return self._rules

    def evaluate(self, origin: Optional[str]) -> OriginDecision:
        """
        Decide whether an origin may make cross-origin requests.

        Args:
            origin: Value of the Origin header, or None when absent

        Returns:
            ALLOW, or a denial carrying the rejected origin in its reason
        """
        # Same-origin and non-browser callers send no Origin
        if not origin:
            return ALLOW
        if any(rule.matches(origin) for rule in self._rules):
            return ALLOW
        return OriginDecision.deny(origin)

    def check(self, origin: Optional[str]) -> None:
        """Raise OriginNotAllowedError unless the origin is allowed."""
        decision = self.evaluate(origin)
        if not decision.allowed:
            raise OriginNotAllowedError(origin, decision.reason)

    def cors_origins(self) -> List[Union[str, Pattern]]:
        """Rules in the form accepted by flask-cors' ``origins`` option."""
        return [rule.as_cors_origin() for rule in self._rules]
