import os
import json
import time
from typing import List, Dict, Optional
from ..protocol.config.params import CURRENT_NETWORK, NetworkConfig
from ..protocol.crypto.keys import generate_private_key, public_key_from_private
from ..protocol.crypto.addresses import address_from_pubkey

KEYSTORE_DIR = os.path.expanduser(os.environ.get("USTAKING_KEYSTORE", "~/.ustaking/keys"))

PUBLIC_FIELDS = ("name", "address", "public_key", "network")


class KeyStore:
    """
    Signing keys of staking principals, one JSON file per key.

    Files live under `<root_dir>/<network_id>/` so a devnet key is never
    offered for a mainnet call.
    """

    def __init__(self, root_dir: Optional[str] = None, network: NetworkConfig = CURRENT_NETWORK):
        self.network = network
        self.root_dir = os.path.join(root_dir or KEYSTORE_DIR, network.network_id)
        os.makedirs(self.root_dir, exist_ok=True)

    def _path(self, name: str) -> str:
        return os.path.join(self.root_dir, f"{name}.json")

    def create_key(self, name: str) -> Dict[str, str]:
        return self._store(name, generate_private_key())

    def import_key(self, name: str, private_key_hex: str) -> Dict[str, str]:
        """Imports a hex secp256k1 private key."""
        try:
            priv = bytes.fromhex(private_key_hex)
        except ValueError:
            raise ValueError("Invalid hex string")
        if len(priv) != 32:
            raise ValueError(f"Private key must be 32 bytes, got {len(priv)}")
        return self._store(name, priv)

    def _store(self, name: str, priv: bytes) -> Dict[str, str]:
        pub = public_key_from_private(priv)
        key_data = {
            "name": name,
            "address": address_from_pubkey(pub, prefix=self.network.bech32_prefix_acc),
            "public_key": pub.hex(),
            "network": self.network.network_id,
            "private_key": priv.hex(),  # TODO: Encrypt with a passphrase
            "created_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        # Created owner-only; never replaces an existing key
        try:
            fd = os.open(self._path(name), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            raise ValueError(f"Key '{name}' already exists")
        with os.fdopen(fd, "w") as f:
            json.dump(key_data, f, indent=2)
        return key_data

    def get_key(self, name: str) -> Optional[Dict[str, str]]:
        path = self._path(name)
        if not os.path.exists(path):
            return None
        with open(path, "r") as f:
            return json.load(f)

    def private_key(self, name: str) -> bytes:
        """Raw private key of `name`. KeyError if unknown."""
        key = self.get_key(name)
        if key is None:
            raise KeyError(name)
        return bytes.fromhex(key["private_key"])

    def list_keys(self) -> List[Dict[str, str]]:
        """Public view of every key, sorted by name."""
        names = sorted(f[:-5] for f in os.listdir(self.root_dir) if f.endswith(".json"))
        return [{field: self.get_key(n).get(field, "") for field in PUBLIC_FIELDS} for n in names]

    def delete_key(self, name: str) -> bool:
        path = self._path(name)
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True
