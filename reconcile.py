"""
reconcile.py
Turn a parsed route record into ROA entries under the filter policy.
"""

from typing import List, Optional
from models import RouteRecord, ROAEntry, Verdict, OutOfPolicyRange
from filters import FilterTable


def clamp_max_length(declared: Optional[int], min_length: int, max_length: int) -> int:
    """
    Clamp a declared max-length into [min_length, max_length].
    No declaration means the filter's max_length.
    """
    if declared is None:
        return max_length
    if declared > max_length:
        return max_length
    if declared < min_length:
        return min_length
    return declared


def reconcile(record: RouteRecord, table: FilterTable) -> List[ROAEntry]:
    """
    Returns [] for denied or too-specific routes.
    Raises OutOfPolicyRange when no filter rule covers the route.
    """
    address = record.network.address
    res = table.resolve(address)
    if res.verdict is Verdict.EXCLUDED:
        return []
    if res.verdict is Verdict.REJECTED:
        raise OutOfPolicyRange(address)

    max_length = clamp_max_length(record.max_length, res.min_length, res.max_length)
    if record.network.prefix_length > max_length:
        return []

    return [ROAEntry(prefix=record.prefix, max_length=max_length, asn=asn) for asn in record.origins]
