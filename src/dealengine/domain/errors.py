# src/dealengine/domain/errors.py


class UnsupportedDealKind(ValueError):
    """
    Raised when a deal kind outside real-estate | business | hybrid reaches a
    dispatch point. This is a caller bug, not a recoverable condition.
    """

    def __init__(self, kind: object):
        self.kind = kind
        super().__init__(f"unsupported deal kind: {kind!r}")
