"""Search core exceptions."""


class SearchInvariantError(Exception):
    """Search state machine was driven into an illegal transition.

    Raised for reprocessing an expanded node, re-queueing a node that is
    already queued or expanded, popping an empty frontier, or attaching a
    contribution outside its phase. These indicate a broken implementation
    and are never converted into penalties.
    """
