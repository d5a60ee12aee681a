import pytest

from tether import Member
from tether.exception import DataIntegrityError, RecordNotFound


@pytest.fixture
async def members(tether):
    await tether.repository.create(Member("alice", 10_000))
    await tether.repository.create(Member("bob", 10_000))


async def test_transfer(tether, pool, members):
    source, target = await tether.transfers.transfer("alice", "bob", 2_000)

    assert source == Member("alice", 8_000)
    assert target == Member("bob", 12_000)
    assert (await tether.repository.read_by_key("alice")).money == 8_000
    assert (await tether.repository.read_by_key("bob")).money == 12_000
    assert pool.outstanding == 0


async def test_transfer_failure_rolls_back(
    tether, pool, members, monkeypatch
):
    update_balance = tether.repository.update_balance
    calls = []

    async def flaky_update(member_id, money, **kwargs):
        calls.append(member_id)
        if member_id == "bob":
            raise DataIntegrityError("disk went away", operation="update")
        return await update_balance(member_id, money, **kwargs)

    monkeypatch.setattr(tether.repository, "update_balance", flaky_update)

    with pytest.raises(DataIntegrityError):
        await tether.transfers.transfer("alice", "bob", 2_000)

    assert calls == ["alice", "bob"]
    monkeypatch.undo()
    assert (await tether.repository.read_by_key("alice")).money == 10_000
    assert (await tether.repository.read_by_key("bob")).money == 10_000
    assert pool.outstanding == 0
    assert len(tether.registry) == 0


async def test_transfer_to_missing_member(tether, pool, members):
    with pytest.raises(RecordNotFound):
        await tether.transfers.transfer("alice", "carol", 100)

    assert (await tether.repository.read_by_key("alice")).money == 10_000
    assert pool.outstanding == 0


@pytest.mark.parametrize(
    "from_id,to_id,amount",
    (("alice", "bob", 0), ("alice", "bob", -5), ("alice", "alice", 10)),
)
async def test_transfer_rejects_bad_arguments(
    tether, pool, from_id, to_id, amount
):
    with pytest.raises(ValueError):
        await tether.transfers.transfer(from_id, to_id, amount)

    assert pool.acquired == 0
