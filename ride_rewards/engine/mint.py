"""
RIDE REWARDS - Mint Instructions
=================================

A successful reward calculation hands exactly one MintInstruction to the
token collaborator. Instructions queue in a MintOutbox owned by the engine
until the host drains them; the engine never waits for, or rolls back on,
the mint itself.

When a signer key is configured each instruction is signed (secp256k1) so
the token contract can authenticate it with ecrecover.

Signing pipeline (must match the token contract):
    1. Payload hash : keccak256(abi.encode(rideId, recipient, amount,
                                           tokenContract, nonce))
    2. ETH prefix   : "\\x19Ethereum Signed Message:\\n32" + hash
    3. Sign         : ECDSA secp256k1 -> (v, r, s)
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from eth_abi import encode as abi_encode
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

logger = logging.getLogger("ride_rewards.mint")


def _keccak256(data: bytes) -> bytes:
    """Ethereum Keccak-256 (original padding, not NIST SHA-3)."""
    return bytes(Web3.keccak(data))


def _eth_address(public_key: ec.EllipticCurvePublicKey) -> str:
    """Checksummed address: last 20 bytes of keccak over the raw X||Y point."""
    point = public_key.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    return Web3.to_checksum_address("0x" + _keccak256(point[1:])[-20:].hex())


@dataclass(frozen=True)
class MintSignature:
    v: int
    r: str   # 0x-prefixed, 32 bytes
    s: str   # 0x-prefixed, 32 bytes


@dataclass(frozen=True)
class MintInstruction:
    ride_id:        int
    amount:         int
    recipient:      str
    token_contract: Optional[str]
    nonce:          str
    signature:      Optional[MintSignature] = None

    def to_dict(self) -> dict:
        return asdict(self)


class MintSigner:
    """ECDSA (secp256k1) signer for mint instructions."""

    def __init__(self, private_key_hex: Optional[str] = None):
        self._private_key = self._load_key(private_key_hex)
        self.address = _eth_address(self._private_key.public_key())
        logger.info(f"Mint signer address: {self.address}")

    @staticmethod
    def _load_key(private_key_hex: Optional[str]) -> ec.EllipticCurvePrivateKey:
        if not private_key_hex:
            logger.warning("No mint signer key configured, signing with a throwaway key")
            return ec.generate_private_key(ec.SECP256K1())
        secret = int(private_key_hex.strip().removeprefix("0x"), 16)
        return ec.derive_private_key(secret, ec.SECP256K1())

    @staticmethod
    def digest(instruction: MintInstruction) -> bytes:
        encoded = abi_encode(
            ["uint256", "string", "uint256", "string", "string"],
            [
                instruction.ride_id,
                instruction.recipient,
                instruction.amount,
                instruction.token_contract or "",
                instruction.nonce,
            ],
        )
        return _keccak256(encoded)

    def sign(self, instruction: MintInstruction) -> MintInstruction:
        key_bytes = self._private_key.private_numbers().private_value.to_bytes(32, "big")
        signed = Account.sign_message(
            encode_defunct(self.digest(instruction)), private_key=key_bytes
        )
        signature = MintSignature(
            v = signed.v,
            r = "0x" + signed.r.to_bytes(32, "big").hex(),
            s = "0x" + signed.s.to_bytes(32, "big").hex(),
        )
        return replace(instruction, signature=signature)

    def verify(self, instruction: MintInstruction) -> bool:
        sig = instruction.signature
        if sig is None:
            return False
        try:
            recovered = Account.recover_message(
                encode_defunct(self.digest(instruction)),
                vrs=(sig.v, int(sig.r, 16), int(sig.s, 16)),
            )
        except Exception:
            return False
        return recovered == self.address


class MintOutbox:
    """Instructions emitted by the engine, waiting for the token collaborator."""

    def __init__(self, signer: Optional[MintSigner] = None):
        self.signer    = signer
        self._pending: list[MintInstruction] = []
        self._sequence = 0

    def prepare(
        self,
        ride_id:        int,
        amount:         int,
        recipient:      str,
        token_contract: Optional[str],
    ) -> MintInstruction:
        """Builds (and signs) the next instruction without queuing it."""
        instruction = MintInstruction(
            ride_id        = ride_id,
            amount         = amount,
            recipient      = recipient,
            token_contract = token_contract,
            nonce          = f"{ride_id}-{self._sequence + 1}",
        )
        if self.signer is not None:
            instruction = self.signer.sign(instruction)
        return instruction

    def enqueue(self, instruction: MintInstruction) -> None:
        self._sequence += 1
        self._pending.append(instruction)
        logger.info(
            f"[ride {instruction.ride_id}] mint queued: {instruction.amount} -> "
            f"{instruction.recipient} (nonce={instruction.nonce}, "
            f"signed={instruction.signature is not None})"
        )

    @property
    def pending(self) -> tuple[MintInstruction, ...]:
        return tuple(self._pending)

    @property
    def emitted_count(self) -> int:
        return self._sequence

    def drain(self) -> list[MintInstruction]:
        """Hands every pending instruction to the caller and clears the queue."""
        drained, self._pending = self._pending, []
        if drained:
            logger.info(f"[mint] drained {len(drained)} instruction(s)")
        return drained
