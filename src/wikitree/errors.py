"""Structured errors for wikitree operations."""

import json
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes surfaced by the CLI with --json-errors."""

    ROOT_NOT_CONFIGURED = "ROOT_NOT_CONFIGURED"
    DOCUMENT_NOT_FOUND = "DOCUMENT_NOT_FOUND"
    STORAGE_ERROR = "STORAGE_ERROR"


class WikitreeError(Exception):
    """Error raised by core operations, carrying a code and optional details."""

    def __init__(self, code: ErrorCode, message: str, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"error": error}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def document_not_found(cls, path: str) -> "WikitreeError":
        return cls(
            ErrorCode.DOCUMENT_NOT_FOUND,
            f"Document not found: {path}",
            {"path": path},
        )

    @classmethod
    def root_not_configured(cls, message: str) -> "WikitreeError":
        return cls(ErrorCode.ROOT_NOT_CONFIGURED, message)


def format_error_json(code: str, message: str, details: dict | None = None) -> str:
    """Format an error as JSON for --json-errors output."""
    error: dict[str, dict[str, object]] = {"error": {"code": code, "message": message}}
    if details:
        error["error"]["details"] = details
    return json.dumps(error)
