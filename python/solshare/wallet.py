"""
Location: python/solshare/wallet.py

Summary:
    One-time payment wallet generation. Each payment session receives a
    fresh Solana key pair; the address is shown to the payer and polled,
    the secret key lives only as long as the session.

Usage:
    Used by engine.py when a session starts. Implement the WalletGenerator
    protocol to plug in another key source.

Example:
    from solshare.wallet import SoldersWalletGenerator

    keypair = SoldersWalletGenerator().generate()
    print(keypair.address)
"""

import logging
from typing import Protocol, runtime_checkable

from solders.keypair import Keypair

from .errors import WalletGenerationError
from .types import WalletKeypair


logger = logging.getLogger(__name__)


@runtime_checkable
class WalletGenerator(Protocol):
    """
    Protocol for producing payment key pairs.

    Implementations must fail loudly: an empty address would make
    polling meaningless, so generate() raises instead of returning one.
    """

    def generate(self) -> WalletKeypair:
        """
        Generate a fresh key pair.

        Returns:
            WalletKeypair with a non-empty address

        Raises:
            WalletGenerationError: If no key pair could be produced
        """
        ...


class SoldersWalletGenerator:
    """Generates Solana ed25519 key pairs with solders."""

    def generate(self) -> WalletKeypair:
        try:
            keypair = Keypair()
            address = str(keypair.pubkey())
            secret_hex = bytes(keypair).hex()
        except Exception as exc:
            raise WalletGenerationError(f"Failed to generate payment wallet: {exc}") from exc

        if not address:
            raise WalletGenerationError("Generated payment wallet has an empty address")

        logger.debug("Generated payment wallet %s...", address[:8])
        return WalletKeypair(address=address, private_material=secret_hex)
