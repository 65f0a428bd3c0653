"""
chains/signer.py - Local transaction signing.

Wraps an eth-account LocalAccount. The private key never leaves this
object; only the address and signed raw transactions are exposed.
"""

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address, to_hex

from core.exceptions import ConfigError
from core.constants import ErrorCode


class TransactionSigner:
    """Signs legacy (type 0) transactions for a single chain."""

    def __init__(self, private_key: str, chain_id: int):
        if not private_key:
            raise ConfigError(
                "Signing key is not configured",
                code=ErrorCode.CONFIG_MISSING_SIGNER,
            )
        try:
            self._account: LocalAccount = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            # Do not echo the key
            raise ConfigError(
                f"Invalid signing key: {type(e).__name__}",
                code=ErrorCode.CONFIG_MISSING_SIGNER,
            ) from e
        self.chain_id = chain_id

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(
        self,
        to: str,
        data: str,
        nonce: int,
        gas: int,
        gas_price: int,
        value: int = 0,
    ) -> str:
        """Return the signed raw transaction as 0x-hex."""
        tx = {
            "to": to_checksum_address(to),
            "data": data,
            "value": value,
            "nonce": nonce,
            "gas": gas,
            "gasPrice": gas_price,
            "chainId": self.chain_id,
        }
        signed = self._account.sign_transaction(tx)
        return to_hex(signed.raw_transaction)

    def __repr__(self) -> str:
        return f"TransactionSigner(address={self.address}, chain_id={self.chain_id})"
