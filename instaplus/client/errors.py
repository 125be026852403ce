from typing import Optional

class ClientError(Exception):
    """Base for every error raised by the client SDK"""

class ValidationError(ClientError):
    """Input rejected before any request was dispatched"""

class Cancelled(ClientError):
    """A page fetch was superseded by a newer request"""

class NetworkError(ClientError):
    """The server could not be reached"""

class UpstreamFailure(ClientError):
    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Upstream request failed with {status_code}: {detail}")

class PartialFailure(ClientError):
    """An upload batch failed; every placeholder of the batch is rolled back"""

    def __init__(self, batch_size: int, cause: Optional[Exception] = None):
        self.batch_size = batch_size
        self.cause = cause
        super().__init__(f"Upload of {batch_size} file(s) failed: {cause}")
