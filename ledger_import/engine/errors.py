"""Caller-facing errors raised by the import pipeline.

Each error carries a message meant to be shown to the end user as-is.
Row-level problems during normalization are not errors; those rows are
skipped.
"""


class ImportPipelineError(ValueError):
    """Base class for import pipeline failures."""


class EmptyFileError(ImportPipelineError):
    """The CSV file has no data rows."""

    def __init__(self, message: str = "CSV file is empty"):
        super().__init__(message)


class UnauthorizedError(ImportPipelineError):
    """No caller identity was supplied."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class AccountNotFoundError(ImportPipelineError):
    """The account does not exist or belongs to another user."""

    def __init__(self, message: str = "Account not found"):
        super().__init__(message)


class NoTransactionsError(ImportPipelineError):
    """An import was requested with nothing to import."""

    def __init__(self, message: str = "No transactions to import"):
        super().__init__(message)


class DuplicateReconcileTargetError(ImportPipelineError):
    """Two selected rows would replace the same existing transaction."""

    def __init__(
        self,
        message: str = (
            "Two or more rows are matched to the same payment. "
            "Please resolve before importing."
        ),
    ):
        super().__init__(message)


class ReconcileTargetNotFoundError(ImportPipelineError):
    """A reconcile item points at a record that is not a replaceable payment on the account."""

    def __init__(
        self,
        message: str = (
            "A matched payment could not be found on this account. "
            "Please re-run duplicate detection."
        ),
    ):
        super().__init__(message)
