"""Root conftest: shared test configuration."""

import os

# Ensure tests never reach real Twitch or Redis
os.environ.setdefault("TWITCH_CLIENT_ID", "test-client-id")
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("LOG_FORMAT", "text")
