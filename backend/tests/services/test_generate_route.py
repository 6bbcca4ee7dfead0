"""API Tests: GET /api/v1/generate, outcome → redirect mapping, credential headers."""

from subrecap.core.errors import UpstreamStatusError, UpstreamTransportError


async def test_fresh_user_without_recap_redirects_to_follows(client, auth_headers, store_factory):
    resp = await client.get("/api/v1/generate", headers=auth_headers)

    assert resp.status_code == 302
    assert resp.headers["location"] == "/follows"
    assert "user-1" in store_factory.store


async def test_fresh_user_with_recap_redirects_to_generate(client, auth_headers):
    resp = await client.get("/api/v1/generate?wants=true", headers=auth_headers)

    assert resp.status_code == 302
    assert resp.headers["location"] == "/generate"


async def test_second_request_is_served_from_cache(client, auth_headers, fake_twitch):
    await client.get("/api/v1/generate?wants=true", headers=auth_headers)
    calls_after_first = len(fake_twitch.calls["follows"])

    resp = await client.get("/api/v1/generate?wants=true", headers=auth_headers)

    assert resp.headers["location"] == "/generate"
    assert len(fake_twitch.calls["follows"]) == calls_after_first


async def test_bad_global_token_redirects_with_reason(client, auth_headers, fake_twitch):
    fake_twitch.failures["recaps"] = UpstreamTransportError("boom", "gql.recaps")

    resp = await client.get("/api/v1/generate?wants=true", headers=auth_headers)

    assert resp.status_code == 302
    assert resp.headers["location"] == "/?e=bad_global_token"


async def test_bad_user_token_redirects_with_reason(client, auth_headers, fake_twitch):
    fake_twitch.failures["follows"] = UpstreamStatusError(401, "helix.channels.followed")

    resp = await client.get("/api/v1/generate", headers=auth_headers)

    assert resp.headers["location"] == "/?e=bad_user_token"


async def test_missing_global_token_header(client, auth_headers):
    del auth_headers["X-Twitch-Global-Token"]

    resp = await client.get("/api/v1/generate?wants=true", headers=auth_headers)

    assert resp.headers["location"] == "/?e=missing_global_token"


async def test_missing_user_id_is_401(client, auth_headers):
    del auth_headers["X-User-Id"]

    resp = await client.get("/api/v1/generate", headers=auth_headers)

    assert resp.status_code == 401
    body = resp.json()
    assert body["error"]["code"] == "MISSING_CREDENTIAL"


async def test_non_bearer_authorization_is_401(client, auth_headers):
    auth_headers["Authorization"] = "Basic abc"

    resp = await client.get("/api/v1/generate", headers=auth_headers)

    assert resp.status_code == 401


async def test_invalid_wants_flag_is_400(client, auth_headers):
    resp = await client.get("/api/v1/generate?wants=maybe", headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
