"""
Error taxonomy for envref.

Configuration errors are fatal and surface immediately. Not-found is the
one expected backend failure; it drives fallback ordering. Vendor errors
propagate untouched. Codec errors are fatal to a sync operation and are
raised before anything is written.
"""

from __future__ import annotations

from typing import Optional, Sequence


class EnvrefError(Exception):
    """Base class for every error raised by envref."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(EnvrefError):
    """Missing or unusable project configuration."""


class ConfigNotFoundError(ConfigurationError):
    """No .envref.yaml was found in the directory tree."""


class ConfigValidationError(ConfigurationError):
    """The configuration parsed but failed validation.

    Attributes:
        problems: Every validation problem found, in discovery order.
    """

    def __init__(self, problems: Sequence[str]):
        self.problems = list(problems)
        super().__init__("invalid config: " + "; ".join(self.problems))


class UnknownBackendTypeError(ConfigurationError):
    """A backend entry names a type outside the known set."""

    def __init__(self, backend_type: str, known: Sequence[str]):
        self.backend_type = backend_type
        super().__init__(
            f"unknown backend type {backend_type!r} "
            f"(known types: {', '.join(known)})"
        )


class DuplicateBackendError(ConfigurationError):
    """Two backends were registered under the same name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"backend {name!r} is already registered")


# ---------------------------------------------------------------------------
# Env files
# ---------------------------------------------------------------------------


class EnvFileError(EnvrefError):
    """Problem reading an env file."""


class EnvFileNotFoundError(EnvFileError, FileNotFoundError):
    """A required env file does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"env file not found: {path}")

    def __str__(self) -> str:
        return f"env file not found: {self.path}"


class EnvFileParseError(EnvFileError):
    """A line in an env file could not be parsed."""

    def __init__(self, line: int, message: str, path: Optional[str] = None):
        self.line = line
        self.message = message
        self.path = path
        where = f"{path}: " if path else ""
        super().__init__(f"{where}line {line}: {message}")


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


class BackendError(EnvrefError):
    """A secret backend operation failed."""

    def __init__(self, backend: str, key: Optional[str], message: str):
        self.backend = backend
        self.key = key
        self.message = message
        if key is None:
            super().__init__(f"backend {backend!r}: {message}")
        else:
            super().__init__(f"backend {backend!r}: key {key!r}: {message}")


class NotFoundError(BackendError):
    """The key does not exist in the backend."""

    def __init__(self, backend: str, key: str):
        super().__init__(backend, key, "secret not found")


class VendorError(BackendError):
    """The secret store failed for a reason other than absence."""


class BackendCloseError(EnvrefError):
    """One or more backends failed to release their resources.

    Attributes:
        failures: (backend name, exception) pairs.
    """

    def __init__(self, failures: Sequence[tuple[str, BaseException]]):
        self.failures = list(failures)
        detail = "; ".join(f"{name}: {exc}" for name, exc in self.failures)
        super().__init__(f"closing backends: {detail}")


# ---------------------------------------------------------------------------
# References and resolution
# ---------------------------------------------------------------------------


class InvalidReferenceError(EnvrefError):
    """A value starts with ref:// but is not a well-formed reference."""


class ResolutionError(EnvrefError):
    """Reference resolution could not complete."""


class PartialResolutionError(ResolutionError):
    """One or more references failed to resolve.

    Attributes:
        failures: The per-key failure records.
    """

    def __init__(self, failures: Sequence, message: Optional[str] = None):
        self.failures = list(failures)
        super().__init__(
            message
            or f"{len(self.failures)} reference(s) could not be resolved"
        )


# ---------------------------------------------------------------------------
# Sync codec
# ---------------------------------------------------------------------------


class CodecError(EnvrefError):
    """A sync envelope could not be produced or consumed."""


class MalformedEnvelopeError(CodecError):
    """The envelope is not valid armored ciphertext or its payload is bad."""


class NoMatchingIdentityError(CodecError):
    """None of the supplied identities is a recipient of the envelope."""


class NoRecipientsError(CodecError):
    """Export was attempted with an empty recipient list."""

    def __init__(self, message: str = "at least one recipient is required"):
        super().__init__(message)


class InvalidRecipientError(CodecError):
    """A recipient public key or identity could not be parsed."""


class EmptySecretSetError(CodecError):
    """Export was attempted on a namespace that holds no secrets."""
