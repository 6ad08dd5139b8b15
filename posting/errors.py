"""Posting exceptions."""


class PostingError(Exception):
    """Base exception for posting a card transaction to the ledger."""
    pass


class PostingRejectedError(PostingError):
    """The transaction cannot be turned into a journal entry.

    The message is shown to the user as-is (prefixed with the
    transaction's display name).
    """
    pass


class ConcurrentPostError(PostingError):
    """Another writer stored a different ledger reference first."""
    pass
