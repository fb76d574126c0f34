"""
Ownable - Single-owner capability for administrative operations.

The auction holds one Ownable and exposes it as `auction.ownership`.
No lot or bid operation consults it: owning the auction grants no power
over lots, which belong to their creators.
"""

import threading
from contextlib import nullcontext
from typing import TYPE_CHECKING, Optional

from sealedlots.core.events import AuditLog, OwnershipRenounced, OwnershipTransferred
from sealedlots.core.errors import AccessDeniedError, ValidationError
from sealedlots.crypto import ZERO_ADDRESS, bytes_to_hex
from sealedlots.utils.logger import get_logger
from sealedlots.utils.validation import validate_address

if TYPE_CHECKING:
    from sealedlots.core.storage import StorageManager

logger = get_logger("access")


class Ownable:
    """
    Owner identity with transfer and renouncement.

    Attributes:
        owner: Current owner address, ZERO_ADDRESS once renounced
    """

    def __init__(
        self,
        owner: bytes,
        audit_log: Optional[AuditLog] = None,
        storage_manager: Optional["StorageManager"] = None,
    ):
        valid, err = validate_address(owner, "owner")
        if not valid:
            raise ValidationError(err)

        self.owner = bytes(owner)
        self.audit_log = audit_log
        self.storage_manager = storage_manager
        self._lock = threading.Lock()

    @property
    def renounced(self) -> bool:
        return self.owner == ZERO_ADDRESS

    def is_owner(self, address: bytes) -> bool:
        return not self.renounced and address == self.owner

    def only_owner(self, caller: bytes) -> None:
        """Raise AccessDeniedError unless `caller` is the owner."""
        if not self.is_owner(caller):
            raise AccessDeniedError(f"{bytes_to_hex(caller)} is not the owner")

    def transfer_ownership(self, caller: bytes, new_owner: bytes) -> None:
        """
        Hand ownership to `new_owner`.

        Raises:
            AccessDeniedError: caller is not the owner
            ValidationError: new_owner is malformed or the zero address
        """
        valid, err = validate_address(new_owner, "new_owner")
        if not valid:
            raise ValidationError(err)
        if new_owner == ZERO_ADDRESS:
            raise ValidationError("new_owner must not be the zero address")

        with self._lock:
            self.only_owner(caller)
            previous = self.owner
            event = OwnershipTransferred(previous_owner=previous, new_owner=bytes(new_owner))
            self._apply(bytes(new_owner), event)
        self._publish(event)

        logger.info(f"Ownership transferred {bytes_to_hex(previous)} -> {bytes_to_hex(new_owner)}")

    def renounce_ownership(self, caller: bytes) -> None:
        """
        Give up ownership for good.

        Afterwards no administrative operation can succeed.
        """
        with self._lock:
            self.only_owner(caller)
            previous = self.owner
            event = OwnershipRenounced(previous_owner=previous)
            self._apply(ZERO_ADDRESS, event)
        self._publish(event)

        logger.warning(f"Ownership renounced by {bytes_to_hex(previous)}")

    def _apply(self, new_owner: bytes, event) -> None:
        ordered = self.audit_log.ordered() if self.audit_log is not None else nullcontext()
        with ordered:
            if self.storage_manager:
                self.storage_manager.persist_owner_change(new_owner, event)
            self.owner = new_owner
            if self.audit_log is not None:
                self.audit_log.record(event)

    def _publish(self, event) -> None:
        # Outside the owner lock: subscribers may query or call back in
        if self.audit_log is not None:
            self.audit_log.publish(event)

    def __repr__(self) -> str:
        return f"Ownable(owner={bytes_to_hex(self.owner)})"
