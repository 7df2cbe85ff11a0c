"""Custom exception classes for structured error handling."""

from typing import Any


class TicketBridgeError(Exception):
    """Base exception for all ticket-bridge errors."""

    def __init__(self, code: str, message: str, status_code: int = 500) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "error": {"code": self.code, "message": self.message},
        }


class SessionNotFoundError(TicketBridgeError):
    def __init__(self, message: str = "Session not found or expired") -> None:
        super().__init__(code="SESSION_NOT_FOUND", message=message, status_code=404)


class SessionCapacityError(TicketBridgeError):
    def __init__(self, message: str = "Too many active recording sessions") -> None:
        super().__init__(code="SESSION_CAPACITY", message=message, status_code=503)


class InvalidLinkCodeError(TicketBridgeError):
    def __init__(self, message: str = "Invalid link code format") -> None:
        super().__init__(code="INVALID_LINK_CODE", message=message, status_code=400)


class LinkNotFoundError(TicketBridgeError):
    def __init__(self, message: str = "Target code no longer exists") -> None:
        super().__init__(code="LINK_NOT_FOUND", message=message, status_code=404)


class LinkCodeGenerationError(TicketBridgeError):
    def __init__(self, message: str = "Could not generate a unique link code") -> None:
        super().__init__(code="LINK_CODE_GENERATION_FAILED", message=message, status_code=500)


class LinkConfigError(TicketBridgeError):
    def __init__(self, message: str = "Invalid link configuration") -> None:
        super().__init__(code="INVALID_LINK_CONFIG", message=message, status_code=400)


class TicketValidationError(TicketBridgeError):
    def __init__(self, message: str = "Record a video or describe the problem") -> None:
        super().__init__(code="TICKET_VALIDATION_FAILED", message=message, status_code=400)


class OwnerDisconnectedError(TicketBridgeError):
    def __init__(self, message: str = "The link owner has disconnected their account") -> None:
        super().__init__(code="OWNER_DISCONNECTED", message=message, status_code=500)


class ItemStoreError(TicketBridgeError):
    def __init__(self, message: str = "monday.com request failed") -> None:
        super().__init__(code="ITEM_STORE_ERROR", message=message, status_code=502)


class StorageError(TicketBridgeError):
    def __init__(self, message: str = "Storage backend unavailable") -> None:
        super().__init__(code="STORAGE_ERROR", message=message, status_code=503)


class StorageRateLimitError(StorageError):
    def __init__(self, message: str = "Storage request limit exceeded") -> None:
        super().__init__(message=message)
        self.code = "STORAGE_RATE_LIMITED"
        self.status_code = 429


class UploadTooLargeError(TicketBridgeError):
    def __init__(self, message: str = "File too large") -> None:
        super().__init__(code="UPLOAD_TOO_LARGE", message=message, status_code=413)


class MissingUploadError(TicketBridgeError):
    def __init__(self, message: str = "No file uploaded") -> None:
        super().__init__(code="MISSING_UPLOAD", message=message, status_code=400)


class HandoffError(TicketBridgeError):
    """Client-side failure while coordinating a recording hand-off."""

    def __init__(self, message: str = "Recording hand-off failed") -> None:
        super().__init__(code="HANDOFF_FAILED", message=message, status_code=500)


class PopupBlockedError(HandoffError):
    def __init__(
        self, message: str = "The recording window was blocked. Allow popups and try again."
    ) -> None:
        super().__init__(message=message)
        self.code = "POPUP_BLOCKED"
