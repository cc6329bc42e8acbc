import json
import pytest
from ustaking.ledger.core.clock import ManualClock
from ustaking.ledger.core.node import StakingNode
from ustaking.ledger.core.token import MINTER_ROLE
from ustaking.protocol.config.params import UNIT
from ustaking.protocol.crypto.addresses import address_from_bytes, address_from_pubkey
from ustaking.protocol.crypto.keys import generate_private_key, public_key_from_private
from ustaking.protocol.types.call import Call
from ustaking.protocol.types.common import (
    CallType,
    InvalidAddress,
    InvalidArguments,
    InvalidNonce,
    InvalidSignature,
    InvalidStakeType,
    Unauthorized,
)

START = 1_700_000_000


class Key:
    def __init__(self):
        self.priv = generate_private_key()
        self.pub = public_key_from_private(self.priv)
        self.address = address_from_pubkey(self.pub)


def signed(key: Key, call_type: CallType, nonce: int, **args) -> Call:
    call = Call(
        call_type=call_type,
        from_address=key.address,
        nonce=nonce,
        args=args,
        pub_key=key.pub.hex(),
    )
    call.sign(key.priv)
    return call


@pytest.fixture
def keys():
    return {name: Key() for name in ("owner", "ref", "user")}


@pytest.fixture
def clock():
    return ManualClock(start=START)


@pytest.fixture
def node(tmp_path, keys, clock):
    n = StakingNode(
        str(tmp_path / "ledger.db"),
        owner=keys["owner"].address,
        ref_wallet=keys["ref"].address,
        alloc={keys["user"].address: 2000 * UNIT},
        clock=clock,
    )
    yield n
    n.close()


def test_genesis(node, keys):
    assert node.token.balance_of(keys["user"].address) == 2000 * UNIT
    assert node.token.balance_of(keys["owner"].address) == 78_998_000 * UNIT
    assert node.token.has_role(MINTER_ROLE, node.staking.address)
    assert node.staking.ref_wallet == keys["ref"].address
    assert node.get_nonce(keys["user"].address) == 0


def test_stake_via_signed_calls(node, keys, clock):
    user = keys["user"]
    staking_addr = node.staking.address

    assert node.apply_call(signed(user, CallType.APPROVE, 0, spender=staking_addr, amount=str(1000 * UNIT))) == {}
    result = node.apply_call(signed(user, CallType.STAKE, 1, stake_type=1, amount=str(1000 * UNIT)))
    assert result == {"stake_id": 1}
    assert node.get_nonce(user.address) == 2
    assert node.token.balance_of(staking_addr) == 1320 * UNIT

    result = node.apply_call(signed(user, CallType.CASH_BACK, 2, stake_id=1))
    assert result == {"paid": str(20 * UNIT)}

    clock.increase_time(2)
    result = node.apply_call(signed(user, CallType.CLAIM, 3, stake_id=1))
    assert result == {"paid": "38580000000000"}

    clock.increase_time(180 * 86_400)
    result = node.apply_call(signed(user, CallType.WITHDRAW, 4, stake_id=1))
    assert result == {"paid": str(1000 * UNIT)}


def test_wrong_nonce_rejected(node, keys):
    user = keys["user"]
    with pytest.raises(InvalidNonce):
        node.apply_call(signed(user, CallType.TRANSFER, 5, to=keys["ref"].address, amount=1))
    assert node.get_nonce(user.address) == 0
    assert node.token.balance_of(keys["ref"].address) == 0

    # Replaying an applied call fails
    call = signed(user, CallType.TRANSFER, 0, to=keys["ref"].address, amount=1)
    node.apply_call(call)
    with pytest.raises(InvalidNonce):
        node.apply_call(call)
    assert node.token.balance_of(keys["ref"].address) == 1


def test_signature_checks(node, keys):
    user, other = keys["user"], keys["ref"]

    # Signed by another key
    call = Call(
        call_type=CallType.TRANSFER,
        from_address=user.address,
        nonce=0,
        args={"to": other.address, "amount": 1},
        pub_key=other.pub.hex(),
    )
    call.sign(other.priv)
    with pytest.raises(InvalidSignature):
        node.apply_call(call)

    # Tampered after signing
    call = signed(user, CallType.TRANSFER, 0, to=other.address, amount=1)
    call.args["amount"] = 1000
    with pytest.raises(InvalidSignature):
        node.apply_call(call)

    # Unsigned
    call = Call(call_type=CallType.TRANSFER, from_address=user.address, nonce=0,
                args={"to": other.address, "amount": 1}, pub_key=user.pub.hex())
    with pytest.raises(InvalidSignature):
        node.apply_call(call)

    assert node.get_nonce(user.address) == 0
    assert node.token.balance_of(other.address) == 0


def test_ledger_rejection_keeps_nonce(node, keys):
    user = keys["user"]
    with pytest.raises(InvalidStakeType):
        node.apply_call(signed(user, CallType.STAKE, 0, stake_type=9, amount=str(100 * UNIT)))
    with pytest.raises(InvalidArguments):
        node.apply_call(signed(user, CallType.STAKE, 0, stake_type=1))
    with pytest.raises(InvalidArguments):
        node.apply_call(signed(user, CallType.CLAIM, 0, stake_id="one"))
    with pytest.raises(Unauthorized):
        node.apply_call(signed(user, CallType.UPDATE_REF_WALLET, 0, ref_wallet=user.address))
    assert node.get_nonce(user.address) == 0


def test_admin_updates_ref_wallet(node, keys):
    owner, user = keys["owner"], keys["user"]
    result = node.apply_call(signed(owner, CallType.UPDATE_REF_WALLET, 0, ref_wallet=user.address))
    assert result == {"ref_wallet": user.address}
    assert node.staking.ref_wallet == user.address


def test_state_survives_restart(tmp_path, keys, clock):
    db_path = str(tmp_path / "ledger.db")
    user = keys["user"]
    node = StakingNode(db_path, owner=keys["owner"].address, ref_wallet=keys["ref"].address,
                       alloc={user.address: 2000 * UNIT}, clock=clock)
    node.apply_call(signed(user, CallType.APPROVE, 0, spender=node.staking.address, amount=str(100 * UNIT)))
    node.apply_call(signed(user, CallType.STAKE, 1, stake_type=1, amount=str(100 * UNIT)))
    supply = node.token.total_supply
    node.close()

    # Genesis is read back from the database, not re-applied
    node = StakingNode(db_path, clock=clock)
    assert node.token.total_supply == supply
    assert node.token.balance_of(user.address) == 1900 * UNIT
    assert node.get_nonce(user.address) == 2
    assert node.staking.get_stake(1).owner == user.address
    assert node.staking.ref_wallet == keys["ref"].address
    node.close()


def test_genesis_file(tmp_path, keys, clock):
    genesis = {
        "owner": keys["owner"].address,
        "ref_wallet": keys["ref"].address,
        "alloc": {keys["user"].address: 5 * UNIT},
    }
    with open(tmp_path / "genesis.json", "w") as f:
        json.dump(genesis, f)

    node = StakingNode(str(tmp_path / "ledger.db"), clock=clock)
    assert node.token.balance_of(keys["user"].address) == 5 * UNIT
    assert node.staking.ref_wallet == keys["ref"].address
    node.close()


def test_empty_node_needs_genesis(tmp_path):
    with pytest.raises(ValueError):
        StakingNode(str(tmp_path / "ledger.db"))


# A well-formed address of another network is rejected like garbage
FOREIGN_ADDRESS = address_from_bytes(b"\x01" * 20, prefix="cpc")


@pytest.mark.parametrize("bad", [None, "", "foo", FOREIGN_ADDRESS, 42])
def test_address_arguments_are_validated(node, keys, bad):
    owner, user = keys["owner"], keys["user"]
    ref_before = node.staking.ref_wallet
    balance_before = node.token.balance_of(user.address)

    with pytest.raises(InvalidAddress):
        node.apply_call(signed(owner, CallType.UPDATE_REF_WALLET, 0, ref_wallet=bad))
    with pytest.raises(InvalidAddress):
        node.apply_call(signed(user, CallType.TRANSFER, 0, to=bad, amount=str(5 * UNIT)))
    with pytest.raises(InvalidAddress):
        node.apply_call(signed(user, CallType.APPROVE, 0, spender=bad, amount="1"))
    with pytest.raises(InvalidAddress):
        node.apply_call(signed(owner, CallType.GRANT_ROLE, 0, role=MINTER_ROLE, account=bad))

    assert node.staking.ref_wallet == ref_before
    assert node.token.balance_of(user.address) == balance_before
    assert node.get_nonce(owner.address) == 0
    assert node.get_nonce(user.address) == 0


def test_ledger_faults_are_not_reported_as_bad_arguments(node, keys, monkeypatch):
    user = keys["user"]

    def broken(*args, **kwargs):
        raise KeyError("internal")

    monkeypatch.setattr(node.staking, "claim", broken)
    with pytest.raises(KeyError):
        node.apply_call(signed(user, CallType.CLAIM, 0, stake_id=1))
    assert node.get_nonce(user.address) == 0
