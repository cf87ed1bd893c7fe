import pytest

from app.core.exceptions import ValidationException
from app.modules.notifications.models import DeviceType
from app.modules.notifications.schemas import DeviceRegistration


def _device(token="tok-1", identifier="phone-1", device_type=DeviceType.IOS):
    return DeviceRegistration(
        token=token, device_type=device_type, device_identifier=identifier
    )


@pytest.mark.asyncio
async def test_register_upserts_by_device_identifier(device_store):
    first = await device_store.register("u1", _device(token="old"))
    second = await device_store.register("u1", _device(token="new"))

    assert first.id == second.id
    tokens = await device_store.list_for_user("u1")
    assert [t.token for t in tokens] == ["new"]


@pytest.mark.asyncio
async def test_tokens_for_users_groups_by_user(device_store):
    await device_store.register("u1", _device("a", "phone"))
    await device_store.register("u1", _device("b", "tablet", DeviceType.ANDROID))
    await device_store.register("u2", _device("c", "browser", DeviceType.WEB))

    tokens = await device_store.tokens_for_users(["u1", "u2", "u3"])

    assert sorted(tokens["u1"]) == ["a", "b"]
    assert tokens["u2"] == ["c"]
    assert "u3" not in tokens


@pytest.mark.asyncio
async def test_remove_requires_token_or_identifier(device_store):
    with pytest.raises(ValidationException):
        await device_store.remove("u1")


@pytest.mark.asyncio
async def test_remove_only_affects_owner(device_store):
    await device_store.register("u1", _device("shared", "phone"))
    await device_store.register("u2", _device("other", "phone"))

    assert await device_store.remove("u2", token="shared") == 0
    assert await device_store.remove("u1", device_identifier="phone") == 1
    assert await device_store.list_for_user("u1") == []


@pytest.mark.asyncio
async def test_prune_deletes_stale_tokens(device_store):
    await device_store.register("u1", _device("stale", "phone"))
    await device_store.register("u2", _device("fresh", "phone"))

    assert await device_store.prune(["stale", "unknown"]) == 1
    assert await device_store.prune([]) == 0
    assert await device_store.tokens_for_users(["u1", "u2"]) == {"u2": ["fresh"]}
