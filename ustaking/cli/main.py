# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import sys
import json
import requests
import os
from typing import Dict, Any
from .keystore import KeyStore
from ..protocol.types.call import Call
from ..protocol.types.common import CallType, StakeType
from ..protocol.config.params import DENOM, to_base_units, from_base_units

DEFAULT_NODE = "http://localhost:8000"


def get_node_url(args):
    return args.node or os.environ.get("USTAKING_NODE", DEFAULT_NODE)


def fetch(url: str) -> Dict[str, Any]:
    resp = requests.get(url, timeout=10)
    if resp.status_code != 200:
        print(f"Error: {resp.text}")
        sys.exit(1)
    return resp.json()


# --- Keys Commands ---
def cmd_keys_add(args):
    ks = KeyStore()
    try:
        key = ks.create_key(args.name)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    print(f"Key '{args.name}' created.")
    print(f"Address: {key['address']}")
    print(f"Pubkey:  {key['public_key']}")
    print("Important: Private key saved unencrypted. Do not share!")


def cmd_keys_import(args):
    ks = KeyStore()
    try:
        key = ks.import_key(args.name, args.private_key)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    print(f"Key '{args.name}' imported.")
    print(f"Address: {key['address']}")


def cmd_keys_list(args):
    keys = KeyStore().list_keys()
    if not keys:
        print("No keys found.")
        return

    print(f"{'Name':<15} {'Address':<45}")
    print("-" * 60)
    for k in keys:
        print(f"{k['name']:<15} {k['address']:<45}")


def cmd_keys_show(args):
    key = KeyStore().get_key(args.name)
    if not key:
        print(f"Key '{args.name}' not found.")
        sys.exit(1)
    print(json.dumps({k: v for k, v in key.items() if k != 'private_key'}, indent=2))


# --- Query Commands ---
def cmd_query_balance(args):
    data = fetch(f"{get_node_url(args)}/balance/{args.address}")
    print(f"Balance: {from_base_units(int(data['balance']))} {DENOM}")
    print(f"Nonce: {data['nonce']}")


def cmd_query_stakes(args):
    data = fetch(f"{get_node_url(args)}/stakes/{args.address}")
    print(f"Stakes: {data['count']}")
    print(f"{'Id':<6} {'Type':<5} {'Amount':<20} {'Pending':<20} {'Cashback':<9} {'Withdrawn'}")
    print("-" * 80)
    for s in data['stakes']:
        print(
            f"{s['id']:<6} {s['stake_type']:<5} "
            f"{from_base_units(int(s['principal_amount'])):<20} "
            f"{from_base_units(int(s['pending_rewards'])):<20} "
            f"{str(s['cash_back_claimed']):<9} {s['withdrawn']}"
        )


def cmd_query_stake(args):
    print(json.dumps(fetch(f"{get_node_url(args)}/stake/{args.stake_id}"), indent=2))


def cmd_query_ref_wallet(args):
    print(fetch(f"{get_node_url(args)}/ref_wallet")["ref_wallet"])


# --- Call Commands ---
def send_call(args, call_type: CallType, call_args: Dict[str, Any]):
    """Builds, signs and broadcasts a call from the key named by --from."""
    ks = KeyStore()
    sender_key = ks.get_key(args.from_name)
    if not sender_key:
        print(f"Key '{args.from_name}' not found.")
        sys.exit(1)

    url = get_node_url(args)
    from_addr = sender_key['address']
    nonce = fetch(f"{url}/balance/{from_addr}")['nonce']

    call = Call(
        call_type=call_type,
        from_address=from_addr,
        nonce=nonce,
        args=call_args,
        pub_key=sender_key['public_key'],
    )
    call.sign(ks.private_key(args.from_name))

    try:
        resp = requests.post(f"{url}/call/send", json=call.model_dump(mode="json"), timeout=10)
    except requests.RequestException as e:
        print(f"Connection error: {e}")
        sys.exit(1)

    res = resp.json()
    if resp.status_code != 200:
        print(f"Rejected [{res.get('code', resp.status_code)}]: {res.get('message', resp.text)}")
        sys.exit(1)

    print(f"Success! CallHash: {res['call_hash']}")
    return res['result']


def _amount(args) -> str:
    try:
        return str(to_base_units(args.amount))
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)


def cmd_tx_approve(args):
    spender = args.spender or fetch(f"{get_node_url(args)}/status")["staking_address"]
    send_call(args, CallType.APPROVE, {"spender": spender, "amount": _amount(args)})


def cmd_tx_transfer(args):
    send_call(args, CallType.TRANSFER, {"to": args.to_address, "amount": _amount(args)})


def cmd_tx_stake(args):
    result = send_call(args, CallType.STAKE, {"stake_type": args.stake_type, "amount": _amount(args)})
    print(f"Stake id: {result['stake_id']}")


def _paid_call(call_type: CallType):
    def cmd(args):
        result = send_call(args, call_type, {"stake_id": args.stake_id})
        print(f"Paid: {from_base_units(int(result['paid']))} {DENOM}")
    return cmd


cmd_tx_cashback = _paid_call(CallType.CASH_BACK)
cmd_tx_claim = _paid_call(CallType.CLAIM)
cmd_tx_withdraw = _paid_call(CallType.WITHDRAW)


def cmd_tx_ref_wallet_update(args):
    send_call(args, CallType.UPDATE_REF_WALLET, {"ref_wallet": args.ref_wallet})


def main():
    parser = argparse.ArgumentParser(prog="ustaking", description="uStaking Client CLI")
    parser.add_argument("--node", help="Node URL (default: http://localhost:8000)")

    subparsers = parser.add_subparsers(dest="command", help="Sub-commands")

    # keys
    p_keys = subparsers.add_parser("keys", help="Manage keys")
    sp_keys = p_keys.add_subparsers(dest="subcommand")

    pk_add = sp_keys.add_parser("add", help="Create new key")
    pk_add.add_argument("name", help="Key name")

    pk_imp = sp_keys.add_parser("import", help="Import private key")
    pk_imp.add_argument("name", help="Key name")
    pk_imp.add_argument("--private-key", required=True, help="Hex private key")

    sp_keys.add_parser("list", help="List keys")

    pk_show = sp_keys.add_parser("show", help="Show key details")
    pk_show.add_argument("name", help="Key name")

    # query
    p_query = subparsers.add_parser("query", help="Query ledger state")
    sp_query = p_query.add_subparsers(dest="subcommand")

    pq_bal = sp_query.add_parser("balance", help="Get account balance")
    pq_bal.add_argument("address", help="Account address")

    pq_stakes = sp_query.add_parser("stakes", help="List stakes of an address")
    pq_stakes.add_argument("address", help="Account address")

    pq_stake = sp_query.add_parser("stake", help="Get stake by id")
    pq_stake.add_argument("stake_id", type=int, help="Stake id")

    sp_query.add_parser("ref-wallet", help="Get referral wallet")

    # tx
    p_tx = subparsers.add_parser("tx", help="Create and send calls")
    sp_tx = p_tx.add_subparsers(dest="subcommand")

    pt_approve = sp_tx.add_parser("approve", help="Allow a spender (default: staking ledger)")
    pt_approve.add_argument("amount", help=f"Amount in {DENOM}")
    pt_approve.add_argument("--spender", help="Spender address")
    pt_approve.add_argument("--from", dest="from_name", required=True, help="Owner key name")

    pt_send = sp_tx.add_parser("transfer", help=f"Send {DENOM} tokens")
    pt_send.add_argument("to_address", help="Recipient address")
    pt_send.add_argument("amount", help=f"Amount in {DENOM}")
    pt_send.add_argument("--from", dest="from_name", required=True, help="Sender key name")

    pt_stake = sp_tx.add_parser("stake", help="Lock tokens in a new stake")
    pt_stake.add_argument("amount", help=f"Amount in {DENOM}")
    pt_stake.add_argument("--type", dest="stake_type", type=int, default=int(StakeType.HALF_YEAR),
                          choices=[int(t) for t in StakeType], help="Stake type")
    pt_stake.add_argument("--from", dest="from_name", required=True, help="Staker key name")

    for name, help_text in (("cashback", "Collect the one-off cashback"),
                            ("claim", "Claim accrued yield"),
                            ("withdraw", "Withdraw principal after the lock")):
        p = sp_tx.add_parser(name, help=help_text)
        p.add_argument("stake_id", type=int, help="Stake id")
        p.add_argument("--from", dest="from_name", required=True, help="Staker key name")

    pt_ref = sp_tx.add_parser("ref-wallet-update", help="Replace the referral wallet (admin)")
    pt_ref.add_argument("ref_wallet", help="New referral address")
    pt_ref.add_argument("--from", dest="from_name", required=True, help="Admin key name")

    args = parser.parse_args()

    if args.command == "keys":
        if args.subcommand == "add": cmd_keys_add(args)
        elif args.subcommand == "import": cmd_keys_import(args)
        elif args.subcommand == "list": cmd_keys_list(args)
        elif args.subcommand == "show": cmd_keys_show(args)
        else: p_keys.print_help()

    elif args.command == "query":
        if args.subcommand == "balance": cmd_query_balance(args)
        elif args.subcommand == "stakes": cmd_query_stakes(args)
        elif args.subcommand == "stake": cmd_query_stake(args)
        elif args.subcommand == "ref-wallet": cmd_query_ref_wallet(args)
        else: p_query.print_help()

    elif args.command == "tx":
        if args.subcommand == "approve": cmd_tx_approve(args)
        elif args.subcommand == "transfer": cmd_tx_transfer(args)
        elif args.subcommand == "stake": cmd_tx_stake(args)
        elif args.subcommand == "cashback": cmd_tx_cashback(args)
        elif args.subcommand == "claim": cmd_tx_claim(args)
        elif args.subcommand == "withdraw": cmd_tx_withdraw(args)
        elif args.subcommand == "ref-wallet-update": cmd_tx_ref_wallet_update(args)
        else: p_tx.print_help()

    else:
        parser.print_help()


if __name__ == "__main__":
    main()
