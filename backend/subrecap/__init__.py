"""SubRecap Application Package: follows, subscriptions and recap aggregation.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
