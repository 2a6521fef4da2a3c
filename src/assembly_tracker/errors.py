"""
Error taxonomy shared by the extraction pipeline and the sync engine.

  ValidationError     caller-supplied data is insufficient; raised before any write
  StoreError          the store rejected a primary write; the transaction is rolled back
  AuditError          the audit-log insert failed; reported on the result, never raised
  ResolutionAmbiguity identity resolution found conflicting or low-confidence values;
                      attached to the resolved identity and logged, never raised
"""
from typing import Iterable, List, Optional


class ValidationError(ValueError):
    """Raised when a batch cannot be applied because its input is incomplete."""

    def __init__(self, problems: Iterable[str]):
        self.problems: List[str] = list(problems)
        super().__init__("; ".join(self.problems) or "invalid input")


class StoreError(RuntimeError):
    """Raised when the persistence layer rejects a primary write."""

    def __init__(self, message: str, *, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class AuditError(RuntimeError):
    """An audit-log write failed. The primary write it describes is kept."""

    def __init__(self, message: str, *, identities: Iterable[str] = ()):
        self.identities: List[str] = list(identities)
        super().__init__(message)


class ResolutionAmbiguity(UserWarning):
    """Identity resolution produced a low-confidence or contested value."""
