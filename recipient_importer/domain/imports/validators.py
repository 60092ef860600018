"""
Recipient validation.

The acceptance rule is deliberately loose: something, an ``@``, something, a
dot, something, with no whitespace anywhere. Rejected candidates are not
dropped; their emails are returned so the final report can list them.
"""
import re
from typing import Iterable, List

from recipient_importer.domain.imports.models import FilterResult, RecipientEntity

EMAIL_SHAPE = re.compile(r"\S+@\S+\.\S+")


def is_valid_email(value: str) -> bool:
    return bool(value) and EMAIL_SHAPE.fullmatch(value) is not None


def accept(candidate: RecipientEntity) -> bool:
    return is_valid_email(candidate.email)


def filter_recipients(candidates: Iterable[RecipientEntity]) -> FilterResult:
    """
    Partition candidates into valid entities and corrupted emails.

    Both sides keep the original decode order.
    """
    valid: List[RecipientEntity] = []
    corrupted: List[str] = []
    for candidate in candidates:
        if accept(candidate):
            valid.append(candidate)
        else:
            corrupted.append(candidate.email)
    return FilterResult(valid=valid, corrupted_emails=corrupted)
