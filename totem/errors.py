class LedgerError(Exception):
    """Base class for everything the ledger rejects or refuses."""


class TransactionFormatError(LedgerError, ValueError):
    pass


class AuthenticationError(LedgerError):
    def __init__(self, ticket_id, reason="signature does not match ticket identity"):
        super().__init__(f"authentication failed for ticket {ticket_id[:16]}: {reason}")
        self.ticket_id = ticket_id
        self.reason = reason


class StateError(LedgerError):
    def __init__(self, current_status, action):
        super().__init__(f"{action.value} denied, ticket is {current_status.value}")
        self.current_status = current_status
        self.action = action


class IntegrityError(LedgerError):
    def __init__(self, index, reason):
        super().__init__(f"chain untrusted from block #{index}: {reason}")
        self.index = index
        self.reason = reason


class MiningCancelled(LedgerError):
    pass
