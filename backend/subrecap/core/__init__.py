"""Core Layer: pure domain logic, no IO, no async, no network.

Invariants:
    - No module in core/ imports from services/, api/ or infrastructure/
    - Decision and parsing functions are pure; the clock is passed in, never read
"""
