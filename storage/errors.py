"""Storage exceptions."""


class StoreError(Exception):
    """Base exception for card register persistence."""
    pass


class SnapshotLoadError(StoreError):
    """The register or its reference data could not be read."""
    pass


class TransactionNotFoundError(StoreError):
    """No transaction with the given id."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class PostedTransactionError(StoreError):
    """Coding changes were attempted on a transaction already posted to the ledger."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} is posted; coding is locked")


class CardNotFoundError(StoreError):
    """No credit card with the given id for the company."""

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Credit card not found: {card_id}")
