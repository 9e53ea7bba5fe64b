"""Asset transfer gateway backed by the lending contract."""

import asyncio
import logging

from stellar_sdk import Keypair, scval

from lendledger.blockchain.client import SorobanClient

logger = logging.getLogger(__name__)


class SorobanTransferGateway:
    """
    Sends transfers and collateral releases through the lending contract.

    The contract holds the tokens and collateral items; the admin keypair
    instructs it to pay out. Calls block on confirmation, so they run in a
    worker thread.
    """

    def __init__(self, client: SorobanClient, admin_keypair: Keypair) -> None:
        self._client = client
        self._admin_keypair = admin_keypair

    async def request_transfer(self, account: str, asset: str, amount: int) -> str:
        """
        Transfer `amount` of the token contract `asset` to `account`.

        Contract signature: withdraw(user, token, amount)
        """
        logger.info(f"Submitting transfer: {account} {amount} {asset}")
        return await asyncio.to_thread(
            self._client.invoke,
            self._admin_keypair,
            "withdraw",
            [
                scval.to_address(account),
                scval.to_address(asset),
                scval.to_int128(int(amount)),
            ],
        )

    async def release_collateral(self, owner: str, collateral_id: str) -> str:
        """
        Return collateral item `collateral_id` to `owner`.

        Contract signature: release_collateral(owner, token_id)
        """
        logger.info(f"Submitting collateral release: {collateral_id} -> {owner}")
        return await asyncio.to_thread(
            self._client.invoke,
            self._admin_keypair,
            "release_collateral",
            [
                scval.to_address(owner),
                scval.to_string(collateral_id),
            ],
        )
