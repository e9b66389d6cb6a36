class HarnessError(Exception):
    """Base exception for worker harness errors."""
    pass

class ConfigurationError(HarnessError):
    pass

class LeaseError(HarnessError):
    pass

class ProtocolError(LeaseError):
    """The coordinator answered in a way this client cannot accept. Never retried."""
    pass

class TooManyWorkItemsError(ProtocolError):
    def __init__(self, count):
        self.count = count
        super().__init__(
            f"server returned more than one work item ({count}); "
            "this client expects at most one"
        )

class TransportError(HarnessError):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code

class MalformedResponseError(TransportError):
    pass

class SleepInterruptedError(HarnessError):
    pass
