"""
errors.py — Exception Hierarchy of the Redemption Service

Every failure the order pipeline can run into is raised as a subclass of
`ServiceError`, so the pipeline boundary can tell expected integration
failures apart from programming errors.
"""


class ServiceError(Exception):
    """Base class for all errors raised by the redemption service."""


class ConfigurationError(ServiceError):
    """A required setting is missing or malformed, or a dependent client was never initialized."""


class StoreError(ServiceError):
    """The code store could not be read or written."""


class DuplicateCodeError(StoreError):
    """The code is already held by another record. Callers draw a fresh code."""

    def __init__(self, code: str):
        super().__init__(f"Code {code} already exists")
        self.code = code


class DuplicateOrderError(StoreError):
    """The order already owns a code record."""

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} already has a code")
        self.order_id = order_id


class CodeGenerationExhausted(ServiceError):
    """No free code was found within the configured number of attempts."""

    def __init__(self, prefix: str, attempts: int):
        super().__init__(f"No unique code for prefix {prefix!r} after {attempts} attempts")
        self.prefix = prefix
        self.attempts = attempts


class PartnerError(ServiceError):
    """The partner loyalty API could not be reached or rejected the code."""


class AnnotationError(ServiceError):
    """The Shopify orderUpdate mutation did not echo back the new note."""

    def __init__(self, message: str, user_errors=None):
        super().__init__(message)
        self.user_errors = user_errors or []
