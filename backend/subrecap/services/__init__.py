"""Service Layer: async fetchers, fan-out resolvers and the aggregate pipeline.

Invariants:
    - Services depend on core/ Protocols, never on concrete adapters
    - Every fan-out is bounded by a semaphore
"""
