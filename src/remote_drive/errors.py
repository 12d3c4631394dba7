"""Error kinds raised by the remote drive engine.

Every failure that reaches a caller is one of these types. Raw transport,
XML and JSON failures are translated at the client boundary and chained as
``__cause__``.
"""

from __future__ import annotations


class DriveError(Exception):
    """Base class for all remote drive errors.

    Attributes:
        code: Server error code when the failure came from an error envelope.
        corrective_action: What the caller should do to recover, if anything.
    """

    corrective_action: str = ""

    def __init__(self, message: str, code: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class NotFound(DriveError):
    """A path or id could not be resolved."""


class AlreadyExists(DriveError):
    """A create request collided with an existing entry of the same name."""

    corrective_action = "list the parent again and descend into the existing folder"

    def __init__(self, message: str, folder_id: str = "", code: str = "") -> None:
        super().__init__(message, code=code)
        self.folder_id = folder_id


class InvalidName(DriveError):
    """A name contains characters the remote store forbids."""

    corrective_action = "rename the entry without the forbidden characters"


class InvalidPath(InvalidName):
    """A path is not absolute."""

    corrective_action = "pass an absolute path starting with '/'"


class OffsetMismatch(DriveError):
    """The upload offset sent does not match what the server expects."""

    corrective_action = "query the upload status and resume from the reported offset"

    def __init__(self, message: str, expected_offset: int | None = None, code: str = "") -> None:
        super().__init__(message, code=code)
        self.expected_offset = expected_offset


class CommitVerifyFailed(DriveError):
    """The server could not verify the uploaded bytes at commit time."""

    corrective_action = "do not assume the file exists; restart the upload from a new session"


class SessionNotFound(DriveError):
    """The upload session expired or was discarded by the server."""

    corrective_action = "restart the upload from session creation"


class UploadStateError(DriveError):
    """An upload step was invoked in a state that does not allow it."""


class TransportFailure(DriveError):
    """Network, signing or response parsing failure."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str = "",
        body: bytes = b"",
    ) -> None:
        super().__init__(message, code=code)
        self.status_code = status_code
        self.body = body


class Cancelled(DriveError):
    """A tree walk was stopped by its callback."""
