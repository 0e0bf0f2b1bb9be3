from __future__ import annotations

from dm_service.application.exceptions import NotFoundError, ValidationError
from dm_service.application.ports.identity import IdentityResolver
from dm_service.domain.value_objects.actor import ActorRef


async def assert_known_counterpart(
    principal_actor: ActorRef,
    counterpart: ActorRef,
    identity: IdentityResolver,
) -> ActorRef:
    """Raise if ``counterpart`` is the caller or is unknown to the identity service.

    Any known actor may message any other; there is no relationship check here.
    """
    if counterpart == principal_actor:
        raise ValidationError("Cannot message yourself")

    if not await identity.exists(counterpart):
        raise NotFoundError(f"{counterpart.kind} {counterpart.id} not found")

    return counterpart
