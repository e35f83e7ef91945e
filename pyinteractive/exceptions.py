"""pyinteractive exception hierarchy.

All pyinteractive exceptions inherit from PyInteractiveError and support cause
chaining. Resolution-phase errors (ModuleLoadError, ReferenceResolutionError,
ReferenceConversionError) are recorded and logged, never raised out of a
resolution pass. ConfigurationError and EvaluationError reach the caller.
"""

from __future__ import annotations

from pathlib import Path


class PyInteractiveError(Exception):
    """Base exception for all pyinteractive errors.

    Wraps original errors as __cause__ for proper exception chaining.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class ModuleLoadError(PyInteractiveError):
    """Raised when a module file cannot be opened or parsed.

    Examples: missing file, undecodable source, syntax error, bad .pyc magic.
    """

    def __init__(self, message: str, *, path: Path | None = None, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.path = path


class ReferenceResolutionError(PyInteractiveError):
    """Raised when a declared import cannot be found in any search directory."""

    def __init__(self, message: str, *, module: str = "", origin: Path | None = None):
        super().__init__(message)
        self.module = module
        self.origin = origin


class ReferenceConversionError(PyInteractiveError):
    """Raised when a resolved path cannot be turned into a Reference."""

    def __init__(self, message: str, *, path: Path | None = None, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.path = path


class ConfigurationError(PyInteractiveError):
    """Raised when the session or server is used without a valid configuration."""

    pass


class EvaluationError(PyInteractiveError):
    """Raised when submitted code fails to compile or raises while running."""

    def __init__(self, message: str, *, code: str = "", cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.code = code
