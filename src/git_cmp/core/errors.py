from __future__ import annotations


class GitCmpError(Exception):
    """Base error for the project."""


class InvalidRootError(GitCmpError):
    pass


class GitPolicyError(GitCmpError):
    pass


class StoreOperationError(GitCmpError):
    pass


class UnresolvedReferenceError(GitCmpError):
    """
    One or more revision names could not be peeled to a commit.
    `names` lists the failing inputs (may be empty when the missing
    commit was expected from autofetch rather than named).
    """

    def __init__(self, names: list[str], message: str = "Some commits were not found.") -> None:
        self.names = list(names)
        if self.names:
            message = f"{message} ({', '.join(self.names)})"
        super().__init__(message)


class MalformedHistoryError(GitCmpError):
    def __init__(self, commit_id: str) -> None:
        self.commit_id = commit_id
        super().__init__(f"Commit {commit_id} has no parent.")
