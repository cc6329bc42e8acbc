# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import asyncio
import json
import logging
import os
from uvicorn import Config, Server
from ...protocol.config.params import CURRENT_NETWORK, UNIT
from ...protocol.crypto.addresses import address_from_pubkey
from ...protocol.crypto.keys import generate_private_key, public_key_from_private
from ..core.node import StakingNode
from ..rpc import api

logger = logging.getLogger(__name__)


def _ensure_key(path: str) -> str:
    """Loads or creates a hex private key file, returns its address."""
    if not os.path.exists(path):
        priv = generate_private_key()
        with open(path, "w") as f:
            f.write(priv.hex())
        print(f"Generated new key at {path}")
    with open(path, "r") as f:
        priv = bytes.fromhex(f.read().strip())
    return address_from_pubkey(public_key_from_private(priv), prefix=CURRENT_NETWORK.bech32_prefix_acc)


def cmd_init(args):
    """Initialize node: owner and referral keys, genesis.json."""
    data_dir = args.datadir
    os.makedirs(data_dir, exist_ok=True)

    owner_addr = _ensure_key(os.path.join(data_dir, "owner_key.hex"))
    ref_addr = _ensure_key(os.path.join(data_dir, "ref_wallet_key.hex"))

    genesis_path = os.path.join(data_dir, "genesis.json")
    if os.path.exists(genesis_path):
        print(f"Genesis already exists at {genesis_path}")
        return

    alloc = {}
    for entry in args.alloc or []:
        addr, _, amount = entry.partition("=")
        alloc[addr] = int(amount) * UNIT

    with open(genesis_path, "w") as f:
        json.dump({"owner": owner_addr, "ref_wallet": ref_addr, "alloc": alloc}, f, indent=2)

    print(f"Owner:      {owner_addr}")
    print(f"Ref wallet: {ref_addr}")
    print(f"Genesis written to {genesis_path}")


async def run_node_async(args):
    db_path = os.path.join(args.datadir, "ledger.db")

    print(f"Starting uStaking node ({CURRENT_NETWORK.network_id})...")
    print(f"Data DB: {db_path}")
    print(f"RPC: {args.host}:{args.port}")

    node = StakingNode(db_path)
    api.node = node

    config = Config(app=api.app, host=args.host, port=args.port, log_level="info")
    server = Server(config)
    try:
        await server.serve()
    finally:
        node.close()


def cmd_run(args):
    """Wrapper to run async main."""
    try:
        asyncio.run(run_node_async(args))
    except KeyboardInterrupt:
        pass


def main():
    parser = argparse.ArgumentParser(description="uStaking Node CLI")
    parser.add_argument("--datadir", default="./.ustaking", help="Data directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Initialize node configuration")
    init_parser.add_argument("--alloc", action="append",
                             help="Genesis allocation ADDRESS=TOKENS (repeatable)")

    run_parser = subparsers.add_parser("run", help="Run the node")
    run_parser.add_argument("--host", default="0.0.0.0", help="RPC Host")
    run_parser.add_argument("--port", type=int, default=8000, help="RPC Port")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    if args.command == "init":
        cmd_init(args)
    elif args.command == "run":
        cmd_run(args)


if __name__ == "__main__":
    main()
