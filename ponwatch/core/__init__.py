"""
Core analysis engine for PONWATCH.

Contains the event model, per-event classification, the key index,
request/response correlation, sequence-integrity checks, missing
transaction tracking, statistics and the engine that ties them together.
"""
