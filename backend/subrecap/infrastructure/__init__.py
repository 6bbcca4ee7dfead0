"""Infrastructure Layer: upstream HTTP client, cache store adapters, logging.

Invariants:
    - Infrastructure never imports from services/ or api/
    - All external calls wrapped with retry/timeout/error mapping
"""
