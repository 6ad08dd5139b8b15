"""
Coding Engine Package

Decides whether credit-card transactions are fully coded and saves coding.

Features:
- Two-tier classification (persisted status, then structural inference)
- Distributed and single coding paths
- Attachment requirements resolved through the reference resolver
- Store-backed coding service that keeps the persisted status current

Usage:
    from coding_engine import CodingClassifier, is_coded

    classifier = CodingClassifier(resolver)
    coded = classifier.classify_all(transactions, distributions_by_tx)
"""

from .models import (
    AMOUNT_EPSILON,
    CodingAssessment,
    CodingPath,
    CodingUpdate,
    MissingField,
)

from .classifier import (
    CodingClassifier,
    assess_coding,
    derive_coding_status,
    infer_is_coded,
    is_coded,
    persisted_status_is_coded,
)

from .service import CodingService

__all__ = [
    # Models
    "AMOUNT_EPSILON",
    "CodingAssessment",
    "CodingPath",
    "CodingUpdate",
    "MissingField",

    # Classifier
    "CodingClassifier",
    "assess_coding",
    "derive_coding_status",
    "infer_is_coded",
    "is_coded",
    "persisted_status_is_coded",

    # Service
    "CodingService",
]
