"""
Error types and error codes for the usage-control authorization server.
Provides structured error handling across all packages.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Standard error codes used across ucpauth."""
    INVALID_REQUEST = "invalid_request"
    INVALID_GRANT = "invalid_grant"
    UNAUTHORIZED = "unauthorized"
    ACCESS_DENIED = "access_denied"
    NEED_INFO = "need_info"
    NOT_FOUND = "not_found"
    DISCOVERY_FAILED = "discovery_failed"
    INVALID_CLAIMS = "invalid_claims"
    INVALID_POLICY = "invalid_policy"
    INVALID_TOKEN = "invalid_token"
    INFERENCE_FAILED = "inference_failed"
    EXECUTION_FAILED = "execution_failed"
    STORAGE_FAILED = "storage_failed"
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"

    def __str__(self) -> str:
        return self.value


class UcpError(Exception):
    """Base exception for all ucpauth errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            'error': self.error_code.value,
            'message': self.message,
        }
        if self.details:
            result['details'] = self.details
        return result

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"


class ConfigurationError(UcpError):
    """Raised when the configuration is incomplete or inconsistent."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR)
        self.config_key = config_key
        if config_key:
            self.details['config_key'] = config_key


class DiscoveryError(UcpError):
    """Authorization server metadata is missing or malformed."""

    def __init__(self, message: str, issuer: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.DISCOVERY_FAILED, cause=cause)
        self.issuer = issuer
        if issuer:
            self.details['issuer'] = issuer


class ClaimVerificationError(UcpError):
    """A claim token could not be verified."""

    def __init__(self, message: str, claim_format: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.INVALID_CLAIMS, cause=cause)
        self.claim_format = claim_format


class PolicyParseError(UcpError):
    """A rule graph submitted to storage is malformed."""

    def __init__(self, message: str, problems: Optional[List[str]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.INVALID_POLICY, cause=cause)
        self.problems = problems or []
        if self.problems:
            self.details['problems'] = self.problems


class StorageError(UcpError):
    """A rule storage backend failed."""

    def __init__(self, operation: str, message: str, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.STORAGE_FAILED, {'operation': operation}, cause)
        self.operation = operation


class InferenceError(UcpError):
    """
    The reasoner failed to produce a derivation.

    `retryable` is only set when the failure is plausibly transient,
    e.g. the reasoner process could not be spawned.
    """

    def __init__(self, message: str, retryable: bool = False, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.INFERENCE_FAILED, {'retryable': retryable}, cause)
        self.retryable = retryable


class PolicyExecutionError(UcpError):
    """A registered plugin failed while interpreting an execution record."""

    def __init__(self, message: str, function: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.EXECUTION_FAILED, cause=cause)
        self.function = function


class TokenError(UcpError):
    """An access token could not be minted or verified."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.INVALID_TOKEN, cause=cause)


class BadRequestError(UcpError):
    """The request is syntactically or semantically invalid."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCode.INVALID_REQUEST)


class UnauthorizedError(UcpError):
    """The caller could not be identified."""

    def __init__(self, message: str = "Authentication required", cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.UNAUTHORIZED, cause=cause)


class ForbiddenError(UcpError):
    """Access is denied. The message is deliberately generic."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, ErrorCode.ACCESS_DENIED)


class NeedInfoError(UcpError):
    """More claims are needed to continue the negotiation."""

    def __init__(self, message: str, ticket: str, required_claims: Dict[str, Any]):
        super().__init__(message, ErrorCode.NEED_INFO)
        self.ticket = ticket
        self.required_claims = required_claims

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error': self.error_code.value,
            'ticket': self.ticket,
            'required_claims': self.required_claims,
        }


__all__ = [
    'ErrorCode',
    'UcpError',
    'ConfigurationError',
    'DiscoveryError',
    'ClaimVerificationError',
    'PolicyParseError',
    'StorageError',
    'InferenceError',
    'PolicyExecutionError',
    'TokenError',
    'BadRequestError',
    'UnauthorizedError',
    'ForbiddenError',
    'NeedInfoError',
]
