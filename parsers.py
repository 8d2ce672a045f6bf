"""
parsers.py
Route object parsing for registry route/route6 entries.

A route entry is RPSL-like text:

    route:      10.1.0.0/20
    origin:     AS100
    max-length: 24
    descr:      some network
                continuation lines start with whitespace

Notes:
- Keywords are matched case-insensitively; the prefix keeps the record's casing.
- Origins accumulate in order; duplicates are kept.
"""

from dataclasses import dataclass, field
from typing import List, Optional
from models import RouteRecord, CIDR, MalformedRecord, NoRouteSpecified, LENGTH_LIMIT, parse_uint

ROUTE_KEYS = ("route:", "route6:")
ORIGIN_KEY = "origin:"
MAX_LENGTH_KEY = "max-length:"


@dataclass
class PartialRecord:
    prefix: Optional[str] = None
    origins: List[str] = field(default_factory=list)
    max_length: Optional[int] = None


class RouteScanner:
    """
    Line scanner that fills a PartialRecord one line at a time.
    """

    def __init__(self):
        self.partial = PartialRecord()

    def feed(self, line: str):
        if not line or line[0].isspace():
            return
        parts = line.split()
        if len(parts) < 2:
            return
        key = parts[0].lower()
        value = parts[1]

        if key in ROUTE_KEYS:
            self.partial.prefix = value
        elif key == ORIGIN_KEY:
            self.partial.origins.append(value.upper())
        elif key == MAX_LENGTH_KEY:
            try:
                self.partial.max_length = parse_uint(value, LENGTH_LIMIT)
            except ValueError:
                raise MalformedRecord(f"invalid max-length: {value}") from None

    def feed_text(self, text: str):
        for line in text.split("\n"):
            self.feed(line)

    def finish(self) -> RouteRecord:
        p = self.partial
        if p.prefix is None:
            raise NoRouteSpecified("no route specified")
        return RouteRecord(
            prefix=p.prefix,
            network=CIDR.parse(p.prefix),
            origins=list(p.origins),
            max_length=p.max_length,
        )


def parse_route_record(text: str) -> RouteRecord:
    """
    Parse the full text of one route entry.
    Raises MalformedRecord, NoRouteSpecified or MalformedCidr.
    """
    scanner = RouteScanner()
    scanner.feed_text(text)
    return scanner.finish()
