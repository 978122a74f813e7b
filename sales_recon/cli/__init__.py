from .app import EXIT_FATAL, EXIT_SUCCESS, EXIT_VALIDATION_MISMATCH, main

__all__ = [
    "main",
    "EXIT_SUCCESS",
    "EXIT_FATAL",
    "EXIT_VALIDATION_MISMATCH",
]
