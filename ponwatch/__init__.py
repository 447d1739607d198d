"""
PONWATCH: control-plane event integrity analysis.

Correlates decoded request/response/alarm events into transactions and
reports missing counterparts, role swaps, arrival-order inversions,
skipped transaction identifiers, latency and throughput for the links
and endpoints observed in a capture.
"""

__version__ = "0.1.0"
