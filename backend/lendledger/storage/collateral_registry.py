import logging
from threading import RLock
from typing import Optional

from lendledger.errors import CollateralAlreadyLocked, NotCollateralOwner
from lendledger.models.message import OutgoingMessage

logger = logging.getLogger(__name__)


class CollateralRegistry:
    """
    Collateral items held by the ledger, mapped to the account that locked them.

    An entry is recorded when the registry reports that an item arrived and
    cleared when the item is released back to its owner.
    """

    def __init__(self) -> None:
        self._locked: dict[str, str] = {}  # collateral_id -> owner
        self._lock = RLock()

    def lock(self, collateral_id: str, owner: str) -> bool:
        """
        Record that `owner` locked `collateral_id`.

        Re-recording the same pair is harmless and returns False. Recording a
        different owner for an id that is already locked raises
        CollateralAlreadyLocked.
        """
        with self._lock:
            current = self._locked.get(collateral_id)
            if current == owner:
                logger.debug(f"Duplicate collateral delivery ignored: {collateral_id}")
                return False
            if current is not None:
                raise CollateralAlreadyLocked(collateral_id, current)
            self._locked[collateral_id] = owner
            logger.info(f"Collateral locked: {collateral_id} by {owner}")
            return True

    def owner_of(self, collateral_id: str) -> Optional[str]:
        with self._lock:
            return self._locked.get(collateral_id)

    def check_owner(self, collateral_id: str, caller: str) -> None:
        """Raise NotCollateralOwner unless `caller` locked `collateral_id`."""
        with self._lock:
            if self._locked.get(collateral_id) != caller:
                raise NotCollateralOwner(caller, collateral_id)

    def release(self, collateral_id: str) -> OutgoingMessage:
        """Clear the entry and return the release request for the registry."""
        with self._lock:
            owner = self._locked.pop(collateral_id)
            logger.info(f"Collateral released: {collateral_id} to {owner}")
            return OutgoingMessage.create_collateral_release(owner, collateral_id)

    def locked_by(self, owner: str) -> list[str]:
        """Collateral ids currently locked by an account."""
        with self._lock:
            return [cid for cid, o in self._locked.items() if o == owner]
