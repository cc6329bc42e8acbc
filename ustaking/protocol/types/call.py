# MIT License
# Copyright (c) 2025 Hashborn

import json
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional
from ..crypto.hash import sha256_hex
from ..crypto.addresses import is_valid_address
from ..crypto.keys import sign as crypto_sign
from .common import CallType, InvalidAddress


class Call(BaseModel):
    """A signed request from a principal to the staking node."""
    call_type: CallType
    from_address: str
    nonce: int
    args: Dict[str, Any] = Field(default_factory=dict)
    signature: str = ""  # hex r||s
    pub_key: str = ""    # hex compressed secp256k1 key of sender

    def hash(self) -> str:
        # Amounts may arrive as int or str; hash their decimal form so both sign alike
        canonical_args = json.dumps(
            {k: str(v) for k, v in self.args.items()},
            sort_keys=True,
            separators=(",", ":"),
        )
        payload_str = (
            self.call_type.value
            + self.from_address
            + str(self.nonce)
            + canonical_args
            + self.pub_key
        )
        return sha256_hex(payload_str.encode("utf-8"))

    @property
    def hash_hex(self) -> str:
        return self.hash()

    def sign(self, priv_key_bytes: bytes):
        """Signs the call hash."""
        msg_hash = bytes.fromhex(self.hash())
        self.signature = crypto_sign(msg_hash, priv_key_bytes).hex()

    def int_arg(self, name: str) -> int:
        """Returns an integer argument; missing or malformed values raise KeyError/ValueError."""
        value = self.args[name]
        if isinstance(value, bool):
            raise ValueError(f"Argument '{name}' must be an integer")
        return int(value)

    def address_arg(self, name: str, prefix: str) -> Optional[str]:
        """
        Returns an address argument.

        Null and empty values pass through so the ledgers reject them as the
        zero principal; anything else must be a bech32 address with `prefix`.
        """
        value = self.args[name]
        if value is None or value == "":
            return value
        if not isinstance(value, str) or not is_valid_address(value, expected_prefix=prefix):
            raise InvalidAddress(f"Argument '{name}' is not a valid address: {value!r}")
        return value
