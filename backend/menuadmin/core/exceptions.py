"""Error kinds raised by the query engine and the generated CRUD layer.

Validation problems subclass ``ValueError`` so the global ``ValueError``
handler turns them into 400 responses. Access and existence failures are
kept distinct so a forbidden entity is never reported as missing.
"""


class FilterValidationError(ValueError):
    """A filter specification or list request is malformed."""


class ProjectionConflictError(ValueError):
    """``include`` and ``select`` were both requested on one query."""


class ModelDescriptionError(ValueError):
    """A model description cannot be turned into schemas and handlers."""


class AccessDeniedError(Exception):
    """The caller lacks a role required by the operation."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(Exception):
    """The entity is absent or hidden by soft-delete filtering."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)
        self.message = message
