"""
robots.txt parsing and rule evaluation.

A deliberately small parser: groups are keyed by the agent name on the
``User-agent`` line, allow patterns are consulted before disallow
patterns, and ``*`` / ``$`` are the only wildcards understood.

Example:
    >>> policy = RobotsPolicy.parse("User-agent: *\\nDisallow: /private")
    >>> policy.is_allowed("https://example.gov/private/x", "MyBot/1.0")
    False
    >>> policy.crawl_delay("MyBot/1.0")
    1.0
"""

import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

from regwatch.core.exceptions import RobotsParseError

WILDCARD_AGENT = "*"
DEFAULT_CRAWL_DELAY = 1.0


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    """
    Turn a robots path pattern into a prefix-matching regex.

    ``*`` matches any sequence and a trailing ``$`` anchors the end of the
    path; everything else is literal.
    """
    anchored = pattern.endswith("$")
    if anchored:
        pattern = pattern[:-1]

    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{body}{'$' if anchored else ''}")


@dataclass
class AgentRules:
    """Directives collected for one ``User-agent`` group."""

    agent: str
    allow: list[str] = field(default_factory=list)
    disallow: list[str] = field(default_factory=list)
    crawl_delay: float | None = None
    sitemaps: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._compiled: dict[str, re.Pattern[str]] = {}

    def _matches(self, path: str, pattern: str) -> bool:
        compiled = self._compiled.get(pattern)
        if compiled is None:
            compiled = self._compiled[pattern] = _compile_pattern(pattern)
        return compiled.match(path) is not None

    def is_allowed(self, path: str) -> bool:
        # Allow wins over disallow regardless of specificity.
        for pattern in self.allow:
            if self._matches(path, pattern):
                return True
        for pattern in self.disallow:
            if self._matches(path, pattern):
                return False
        return True


class RobotsPolicy:
    """
    Parsed robots.txt rule table keyed by lowercase agent name.

    Build instances with RobotsPolicy.parse(); an empty document yields a
    policy that allows everything.
    """

    def __init__(self, groups: dict[str, AgentRules] | None = None) -> None:
        self._groups: dict[str, AgentRules] = groups or {}

    @classmethod
    def parse(cls, text: str) -> "RobotsPolicy":
        """
        Parse a robots.txt document.

        Comments run from ``#`` to the end of the line. Lines are split at
        the first ``:``; lines without a key or a value are ignored, which means
        an empty ``Disallow:`` has no effect.
        A repeated agent name replaces the earlier group.

        Raises:
            RobotsParseError: If a Crawl-delay value is not a number
        """
        groups: dict[str, AgentRules] = {}
        current: AgentRules | None = None

        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            # "#" starts a comment anywhere on the line
            line = raw_line.split("#", 1)[0].strip()
            if not line:
                continue

            key, sep, value = line.partition(":")
            key = key.strip().lower()
            value = value.strip()
            if not sep or not key or not value:
                continue

            if key == "user-agent":
                current = AgentRules(agent=value)
                groups[value.lower()] = current
                continue

            if current is None:
                continue

            if key == "allow":
                current.allow.append(value)
            elif key == "disallow":
                current.disallow.append(value)
            elif key == "crawl-delay":
                try:
                    current.crawl_delay = float(value)
                except ValueError:
                    raise RobotsParseError(
                        f"Invalid Crawl-delay value: {value!r}",
                        line_number=line_number,
                        line=raw_line,
                    ) from None
            elif key == "sitemap":
                current.sitemaps.append(value)

        return cls(groups)

    @property
    def agents(self) -> list[str]:
        """Lowercased agent names that have a rule group."""
        return list(self._groups)

    def rules_for(self, agent: str) -> AgentRules | None:
        """Exact agent group, else the wildcard group, else None."""
        return self._groups.get(agent.lower()) or self._groups.get(WILDCARD_AGENT)

    def is_allowed(self, url: str, agent: str) -> bool:
        """Check whether ``agent`` may fetch ``url`` under this policy."""
        rules = self.rules_for(agent)
        if rules is None:
            return True
        path = urlparse(url).path or "/"
        return rules.is_allowed(path)

    def crawl_delay(self, agent: str) -> float:
        """Crawl delay in seconds for ``agent``, 1.0 when unspecified."""
        rules = self.rules_for(agent)
        if rules is None or rules.crawl_delay is None:
            return DEFAULT_CRAWL_DELAY
        return rules.crawl_delay

    def sitemaps(self) -> list[str]:
        """Sitemap URLs across all groups, first occurrence order, no duplicates."""
        return list(
            dict.fromkeys(url for rules in self._groups.values() for url in rules.sitemaps)
        )

    def __repr__(self) -> str:
        return f"RobotsPolicy(agents={self.agents!r})"
