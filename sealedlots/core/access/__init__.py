"""
Access Control Module.

Owner capability for administrative operations, composed into the
auction service rather than inherited by it.
"""

from sealedlots.core.access.ownable import Ownable

__all__ = ["Ownable"]
