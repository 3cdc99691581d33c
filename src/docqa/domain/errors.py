class DocQAError(Exception):
    """Base error for the document QA service."""


class InvalidInput(DocQAError):
    pass


class NotFound(DocQAError):
    def __init__(self, kind: str, id: str):
        super().__init__(f"{kind} not found: {id}")
        self.kind = kind
        self.id = id


class ProviderRejected(DocQAError):
    """The provider refused the request (malformed, unauthorized, over quota) or answered garbage."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderUnavailable(DocQAError):
    """Transient provider failure that survived the retry budget."""


class DeadlineExceeded(ProviderUnavailable):
    pass


class IndexUnavailable(DocQAError):
    pass
