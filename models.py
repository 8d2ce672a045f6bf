"""
models.py
Shared data structures, parsing helpers, error types, and constants.
"""

from dataclasses import dataclass, field
from enum import Enum
from ipaddress import ip_address, IPv4Address, IPv6Address
from typing import List, Dict, Optional, Union
import re

AFI4 = "ipv4"
AFI6 = "ipv6"

AFI_WIDTH = {AFI4: 32, AFI6: 128}

Address = Union[IPv4Address, IPv6Address]

_UINT = re.compile(r"\+?[0-9]+\Z")

# min/max and max-length values fit an unsigned byte
LENGTH_LIMIT = 255


class RoaError(Exception):
    """Base class for per-record failures."""


class MalformedCidr(RoaError):
    pass


class MalformedRecord(RoaError):
    pass


class NoRouteSpecified(RoaError):
    pass


class OutOfPolicyRange(RoaError):
    def __init__(self, address: Address):
        super().__init__(f"IP {address} is in an invalid range")
        self.address = address


def parse_uint(text: str, limit: Optional[int] = None) -> int:
    """
    Parse a non-negative decimal integer (ASCII digits, optional leading '+').
    Raises ValueError otherwise, including for '1_0' and ' 7', or when above limit.
    """
    if not _UINT.match(text):
        raise ValueError(f"not a non-negative integer: {text!r}")
    value = int(text)
    if limit is not None and value > limit:
        raise ValueError(f"{value} is larger than {limit}")
    return value


def parse_address(text: str) -> Address:
    # zone ids (fe80::1%eth0) are not valid in registry data
    if "%" in text:
        raise ValueError(f"invalid IP address: {text!r}")
    return ip_address(text)


def afi_of(address: Address) -> str:
    return AFI4 if address.version == 4 else AFI6


@dataclass(frozen=True)
class CIDR:
    address: Address
    prefix_length: int

    def __post_init__(self):
        width = AFI_WIDTH[afi_of(self.address)]
        if not 0 <= self.prefix_length <= width:
            raise MalformedCidr(f"invalid prefix length {self.prefix_length} for {self.address}")

    @classmethod
    def parse(cls, text: str) -> "CIDR":
        parts = text.split("/")
        if len(parts) != 2:
            raise MalformedCidr(f"invalid CIDR: {text}")
        try:
            address = parse_address(parts[0])
            length = parse_uint(parts[1])
        except ValueError:
            raise MalformedCidr(f"invalid CIDR: {text}") from None
        return cls(address, length)

    @property
    def afi(self) -> str:
        return afi_of(self.address)

    @property
    def width(self) -> int:
        return AFI_WIDTH[self.afi]

    def contains(self, address: Address) -> bool:
        """
        True when the top prefix_length bits of address equal ours.
        Addresses of the other family never match.
        """
        if address.version != self.address.version:
            return False
        shift = self.width - self.prefix_length
        if shift == 0:
            return int(self.address) == int(address)
        if shift == self.width:
            return True
        return (int(self.address) >> shift) == (int(address) >> shift)

    def __str__(self) -> str:
        return f"{self.address}/{self.prefix_length}"


@dataclass(frozen=True)
class FilterRule:
    network: CIDR
    allow: bool
    min_length: int
    max_length: int


class Verdict(Enum):
    ALLOWED = "allowed"
    EXCLUDED = "excluded"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Resolution:
    verdict: Verdict
    min_length: Optional[int] = None
    max_length: Optional[int] = None


EXCLUDED = Resolution(Verdict.EXCLUDED)
REJECTED = Resolution(Verdict.REJECTED)


@dataclass
class RouteRecord:
    prefix: str
    network: CIDR
    origins: List[str] = field(default_factory=list)
    max_length: Optional[int] = None

    @property
    def afi(self) -> str:
        return self.network.afi


@dataclass(frozen=True)
class ROAEntry:
    prefix: str
    max_length: int
    asn: str

    def serialize(self) -> Dict:
        return {
            "prefix": self.prefix,
            "maxLength": self.max_length,
            "asn": self.asn,
        }


@dataclass
class Dataset:
    generated: int
    valid: int
    roas: List[ROAEntry] = field(default_factory=list)

    @property
    def counts(self) -> int:
        return len(self.roas)

    def serialize(self) -> Dict:
        return {
            "metadata": {
                "counts": self.counts,
                "generated": self.generated,
                "valid": self.valid,
            },
            "roas": [r.serialize() for r in self.roas],
        }
