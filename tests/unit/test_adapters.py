from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone

import httpx
import jwt
import pytest

from dm_service.application.exceptions import DependencyError, TransientIOError
from dm_service.domain.value_objects.actor import ActorProfile, ActorRef
from dm_service.domain.value_objects.enums import ActorKind, AttachmentKind
from dm_service.infrastructure.auth.jwt_verifiers import HS256Verifier, principal_from_claims
from dm_service.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber
from dm_service.infrastructure.bus.serializer import deserialize_event, serialize_event
from dm_service.infrastructure.identity.resolvers import HttpIdentityResolver, profile_from_document
from dm_service.infrastructure.storage.local import LocalFileStorage
from tests.conftest import ACME, ALICE, BOB

SECRET = "unit-test-secret-0123456789abcdef0123"


@pytest.mark.asyncio
async def test_local_storage_writes_under_kind_folder(tmp_path):
    storage = LocalFileStorage(tmp_path, "/uploads/")

    url = await storage.save(AttachmentKind.VIDEO, "Clip.MP4", b"\x00\x01")

    assert url.startswith("/uploads/videos/")
    assert url.endswith(".mp4")
    stored = tmp_path / "videos" / url.rsplit("/", 1)[-1]
    assert stored.read_bytes() == b"\x00\x01"


@pytest.mark.asyncio
async def test_local_storage_names_do_not_collide(tmp_path):
    storage = LocalFileStorage(tmp_path)
    urls = {await storage.save(AttachmentKind.IMAGE, "a.png", b"x") for _ in range(5)}
    assert len(urls) == 5


def _resolver(status_by_path: dict[str, int], docs: dict[str, dict] | None = None) -> HttpIdentityResolver:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        return httpx.Response(status_by_path.get(path, 404), json=(docs or {}).get(path, {}))

    return HttpIdentityResolver(
        httpx.AsyncClient(base_url="http://identity", transport=httpx.MockTransport(handler))
    )


@pytest.mark.asyncio
async def test_identity_resolver_routes_by_kind():
    resolver = _resolver({f"/users/{ALICE.id}": 200, f"/companies/{ACME.id}": 200})

    assert await resolver.exists(ALICE) is True
    assert await resolver.exists(ACME) is True
    assert await resolver.exists(ActorRef(ACME.id, ActorKind.USER)) is False


@pytest.mark.asyncio
async def test_identity_resolver_server_error_is_transient():
    resolver = _resolver({f"/users/{ALICE.id}": 502})
    with pytest.raises(TransientIOError):
        await resolver.exists(ALICE)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 403])
async def test_identity_resolver_rejection_is_not_transient(status):
    resolver = _resolver({f"/users/{ALICE.id}": status})
    with pytest.raises(DependencyError):
        await resolver.exists(ALICE)


@pytest.mark.asyncio
async def test_identity_resolver_rate_limit_is_transient():
    resolver = _resolver({f"/companies/{ACME.id}": 429})
    with pytest.raises(TransientIOError):
        await resolver.resolve(ACME)


@pytest.mark.asyncio
async def test_identity_resolver_reads_profiles():
    resolver = _resolver(
        {f"/users/{ALICE.id}": 200, f"/companies/{ACME.id}": 200},
        docs={
            f"/users/{ALICE.id}": {"firstName": "Alice", "lastName": "Martin", "image": "/a.png"},
            f"/companies/{ACME.id}": {"name": "Acme", "logo": "/acme.png"},
        },
    )

    assert await resolver.resolve(ALICE) == ActorProfile(ALICE, "Alice Martin", "/a.png")
    assert await resolver.resolve(ACME) == ActorProfile(ACME, "Acme", "/acme.png")
    assert await resolver.resolve(BOB) is None


def test_profile_from_sparse_document():
    assert profile_from_document(BOB, {"firstName": "Bob", "image": ""}) == ActorProfile(BOB, "Bob", None)
    assert profile_from_document(BOB, {}) == ActorProfile(BOB)


def test_claims_kind_defaults_to_user():
    assert principal_from_claims({"sub": ALICE.id}).actor == ALICE
    assert principal_from_claims({"sub": ACME.id, "type": "Company"}).actor == ACME
    assert principal_from_claims({"sub": ALICE.id, "kind": "robot"}).actor.kind is ActorKind.USER


def test_claims_reject_unusable_subject():
    with pytest.raises(jwt.InvalidTokenError):
        principal_from_claims({"sub": "a|b"})


@pytest.mark.asyncio
async def test_hs256_verifier_accepts_company_token():
    token = jwt.encode({"sub": ACME.id, "kind": "Company"}, SECRET, algorithm="HS256")

    principal = await HS256Verifier(SECRET).verify(token)

    assert principal.actor == ACME
    assert principal.principal_key == f"Company:{ACME.id}"


@pytest.mark.asyncio
async def test_hs256_verifier_rejects_bad_tokens():
    wrong_key = jwt.encode({"sub": ALICE.id}, "another-secret-0123456789abcdef0123", algorithm="HS256")
    no_subject = jwt.encode({"kind": "User"}, SECRET, algorithm="HS256")
    other_audience = jwt.encode({"sub": ALICE.id, "aud": "billing"}, SECRET, algorithm="HS256")

    verifier = HS256Verifier(SECRET, audience="dm-service")
    for token in (wrong_key, no_subject, other_audience):
        with pytest.raises(jwt.InvalidTokenError):
            await verifier.verify(token)


def test_event_envelope_encodes_rich_values():
    msg_id = uuid.uuid4()
    when = datetime(2026, 1, 1, tzinfo=timezone.utc)

    raw = serialize_event("dm.message_created", {"id": msg_id, "at": when, "kind": ActorKind.COMPANY})

    assert json.loads(raw)["data"] == {"id": str(msg_id), "at": "2026-01-01T00:00:00+00:00", "kind": "Company"}
    assert deserialize_event(raw)[0] == "dm.message_created"
    with pytest.raises(ValueError):
        deserialize_event('{"nope": 1}')


@pytest.mark.asyncio
async def test_subscriber_dispatches_by_event_type():
    seen: list[dict] = []

    async def on_created(data):
        seen.append(data)

    async def broken(data):
        raise RuntimeError("handler bug")

    subscriber = RedisPubSubSubscriber(redis=None, channel="dm.fanout")
    subscriber.on("dm.message_created", on_created)
    subscriber.on("dm.other", broken)

    assert await subscriber.dispatch(serialize_event("dm.message_created", {"message_id": 1})) is True
    assert await subscriber.dispatch(serialize_event("dm.unknown", {})) is False
    assert await subscriber.dispatch(serialize_event("dm.other", {})) is False
    assert await subscriber.dispatch("not json") is False
    assert seen == [{"message_id": 1}]
