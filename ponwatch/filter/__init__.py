"""
Event filtering for PONWATCH.

Provides the structural (link/endpoint) and free-text predicates applied
at ingest and at reanalysis time, and a small query language for
building them.
"""
