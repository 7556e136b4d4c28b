"""Error types carried into the envelope's error/errorString fields"""
from typing import Any, Dict, Optional


class ExtendError(Exception):
    """Base error for all extends. `code` ends up in the envelope's error field."""

    code = 2

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.data = data or {}


class ConfigError(ExtendError):
    """Config file unreadable, unparseable or holding invalid values"""
    code = 1


class SourceError(ExtendError):
    """Data source unreachable: connection refused, command missing, file absent"""
    code = 2


class ParseError(ExtendError):
    """Source answered but the answer could not be understood"""
    code = 3
