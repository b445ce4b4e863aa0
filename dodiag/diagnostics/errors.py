"""
Collaborator failure taxonomy.

Collaborators raise these; probes catch them at their boundary and turn
them into ERROR/WARN verdicts.  Nothing here ever reaches the runner.
"""


class DiagnosticError(Exception):
    """Base class for collaborator failures."""


class CollaboratorUnavailable(DiagnosticError):
    """The OS facility, cmdlet, service or program is missing or failed."""


class CollaboratorTimeout(DiagnosticError):
    """A network call or external process exceeded its deadline."""


class MalformedInput(DiagnosticError):
    """User-supplied input (archive path, file format) is unusable."""


class PartialData(DiagnosticError):
    """A collaborator answered with a record missing expected fields."""

    def __init__(self, message, missing=()):
        super().__init__(message)
        self.missing = tuple(missing)
