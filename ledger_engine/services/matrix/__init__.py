"""
Matrix board services package.
"""

from ledger_engine.services.matrix.matrix_service import (
    CompletionResult,
    MatrixBoardService,
    PositionView,
    validate_matrix_plan,
)

__all__ = [
    "MatrixBoardService",
    "CompletionResult",
    "PositionView",
    "validate_matrix_plan",
]
