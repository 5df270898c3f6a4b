from typing import Optional


class LDESError(Exception):
    """Base class for LDES in LDP failures"""


class ProtocolViolation(LDESError):
    """The graph is not a conformant LDES in LDP (cardinality or type check failed)"""


class NotFound(LDESError):
    """Resource could not be read, or no live version exists"""

    def __init__(self, message: str, identifier: Optional[str] = None):
        super().__init__(message)
        self.identifier = identifier


class UnsupportedContentType(NotFound):
    """Resource was found but is not served as text/turtle"""


class WriteFailure(LDESError):
    """A create, put or patch was not answered with a success status"""

    def __init__(self, message: str, identifier: str, status_code: int):
        super().__init__(f"{message} | status code: {status_code}")
        self.identifier = identifier
        self.status_code = status_code


class AlreadyExists(LDESError):
    """Version-aware create of an entity that still materializes"""

    def __init__(self, identifier: str):
        super().__init__(f"Resource {identifier} already exists")
        self.identifier = identifier
