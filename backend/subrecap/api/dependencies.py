"""Request Dependencies: credentials from headers and the per-request pipeline.

Invariants:
    - Session/cookie handling is upstream of this service: identity arrives in headers
    - Twitch client and store factory live on app.state (built in lifespan)
    - Tests replace get_pipeline / get_store_factory via app.dependency_overrides
"""

from fastapi import Depends, Header, Request

from subrecap.config import Settings, get_settings
from subrecap.core.credentials import ViewerCredentials
from subrecap.core.errors import MissingCredentialError
from subrecap.core.repository_protocols import AggregateCacheStoreFactory
from subrecap.services.aggregate_pipeline import AggregatePipeline


def get_viewer_credentials(
    x_user_id: str | None = Header(None),
    x_twitch_id: str | None = Header(None),
    authorization: str | None = Header(None),
    x_twitch_global_token: str | None = Header(None),
) -> ViewerCredentials:
    if not x_user_id:
        raise MissingCredentialError("X-User-Id")
    if not x_twitch_id:
        raise MissingCredentialError("X-Twitch-Id")
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise MissingCredentialError("Authorization")
    return ViewerCredentials(
        user_id=x_user_id,
        twitch_id=x_twitch_id,
        access_token=token.strip(),
        global_token=x_twitch_global_token or None,
    )


def get_store_factory(request: Request) -> AggregateCacheStoreFactory:
    factory = getattr(request.app.state, "store_factory", None)
    if factory is None:
        raise RuntimeError("Cache store not initialized")
    return factory


def get_pipeline(
    request: Request,
    store_factory: AggregateCacheStoreFactory = Depends(get_store_factory),
    settings: Settings = Depends(get_settings),
) -> AggregatePipeline:
    twitch = getattr(request.app.state, "twitch", None)
    if twitch is None:
        raise RuntimeError("Twitch client not initialized")
    return AggregatePipeline(
        twitch=twitch,
        store_factory=store_factory,
        persisted_query_hash=settings.twitch_persisted_query_hash,
        page_size=settings.follows_page_size,
        concurrency=settings.fanout_concurrency,
    )
