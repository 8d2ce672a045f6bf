"""
filters.py
Registry filter policy: permit/deny rules keyed by address range, first match wins.

Filter source format (one rule per line, anything not starting with a digit is a comment):
    <seq> <permit|deny> <cidr> <min-length> <max-length> <description...>
"""

from typing import Dict, Iterable, Iterator, List, Optional
from models import (
    CIDR, FilterRule, Resolution, Verdict, EXCLUDED, REJECTED,
    Address, AFI4, AFI6, MalformedCidr, LENGTH_LIMIT, parse_uint
)
from log import get_logger

log = get_logger(__name__)

ACTIONS = {"permit": True, "deny": False}


def _is_rule_line(line: str) -> bool:
    return bool(line) and "0" <= line[0] <= "9"


def parse_filter_line(line: str) -> Optional[FilterRule]:
    """
    Parse one filter line. Returns None for comments and for malformed rules;
    a bad filter line never aborts a run.
    """
    if not _is_rule_line(line):
        return None
    parts = line.split()
    if len(parts) < 6:
        return None
    allow = ACTIONS.get(parts[1])
    if allow is None:
        return None
    try:
        network = CIDR.parse(parts[2])
        min_length = parse_uint(parts[3], LENGTH_LIMIT)
        max_length = parse_uint(parts[4], LENGTH_LIMIT)
    except (MalformedCidr, ValueError):
        return None
    return FilterRule(network=network, allow=allow, min_length=min_length, max_length=max_length)


def parse_filter_lines(lines: Iterable[str]) -> Iterator[FilterRule]:
    skipped = 0
    for line in lines:
        rule = parse_filter_line(line)
        if rule is None:
            if _is_rule_line(line):
                skipped += 1
            continue
        yield rule
    if skipped:
        log.debug("skipped %d malformed filter lines", skipped)


class FilterTable:
    """Ordered rule list; append-only while building, read-only while resolving."""

    def __init__(self, rules: Optional[Iterable[FilterRule]] = None):
        self._rules: List[FilterRule] = list(rules or [])

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "FilterTable":
        return cls(parse_filter_lines(lines))

    def append(self, rule: FilterRule):
        self._rules.append(rule)

    def extend(self, lines: Iterable[str]):
        for rule in parse_filter_lines(lines):
            self.append(rule)

    @property
    def rules(self) -> List[FilterRule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def resolve(self, address: Address) -> Resolution:
        for rule in self._rules:
            if rule.network.contains(address):
                if not rule.allow:
                    return EXCLUDED
                return Resolution(Verdict.ALLOWED, rule.min_length, rule.max_length)
        return REJECTED


def build_tables(*sources: Iterable[str]) -> Dict[str, FilterTable]:
    """
    Build one table per address family from any number of filter sources.
    Rules are split by the family of their network, keeping source order.
    """
    tables = {AFI4: FilterTable(), AFI6: FilterTable()}
    for lines in sources:
        for rule in parse_filter_lines(lines):
            tables[rule.network.afi].append(rule)
    log.debug("filter rules: %d ipv4, %d ipv6", len(tables[AFI4]), len(tables[AFI6]))
    return tables
