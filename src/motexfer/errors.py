from __future__ import annotations


class TransferError(Exception):
    """Base class for everything that terminates a single transfer session."""


class TransferTimeout(TransferError):
    pass


class PrematureCompletion(TransferError):
    """The target mote reported completion while lines were still buffered."""


class TransferCancelled(TransferError):
    pass


class LinkError(TransferError):
    pass
