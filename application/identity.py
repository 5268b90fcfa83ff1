from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from domain.models import Role, User

from .grammar import SUPPORT_LITERAL, normalize, role_for_literal


class ClassificationKind(Enum):
    NEW_USER = "new_user"
    EXISTING_USER = "existing_user"
    ROLE_MISMATCH = "role_mismatch"
    SUPPORT_REQUEST = "support_request"
    UNRECOGNIZED = "unrecognized"


@dataclass
class Classification:
    """How the sender of one event relates to the ledger. Never persisted."""

    kind: ClassificationKind
    user: Optional[User] = None
    desired_role: Optional[Role] = None


def classify(text: str, user: Optional[User]) -> Classification:
    """
    Classify the sender of `text` given their stored user row, if any.

    First match wins:
    1. unknown sender choosing a role   -> NEW_USER
    2. known sender sending the support code -> SUPPORT_REQUEST
    3. known sender choosing the other role  -> ROLE_MISMATCH
    4. any other known sender          -> EXISTING_USER
    5. anything else                   -> UNRECOGNIZED
    """

    desired_role = role_for_literal(text)

    if user is None:
        if desired_role is not None:
            return Classification(ClassificationKind.NEW_USER, desired_role=desired_role)
        return Classification(ClassificationKind.UNRECOGNIZED)

    if normalize(text) == SUPPORT_LITERAL:
        return Classification(ClassificationKind.SUPPORT_REQUEST, user=user)

    if desired_role is not None and desired_role is not user.role:
        return Classification(
            ClassificationKind.ROLE_MISMATCH,
            user=user,
            desired_role=desired_role,
        )

    return Classification(ClassificationKind.EXISTING_USER, user=user)
