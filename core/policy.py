# =============================================================================
# core/policy.py - Access Rules
# =============================================================================
# Business rules about who may see or trigger what. Kept free of HTTP so the
# rules can be tested on their own; routers turn a False into a 403.
#
# The score is an internal metric used by stores to evaluate applicants:
# a consultant never sees their own score, whatever else they are allowed.
# =============================================================================

from enum import Enum


class Role(str, Enum):
    CONSULTANT = "consultant"
    STORE_OWNER = "store_owner"
    ADMIN = "admin"
    CUSTOMER = "customer"


SCORE_VIEWER_ROLES = {Role.STORE_OWNER, Role.ADMIN}


def can_view_score(viewer_role: Role | str, viewer_id: str, target_id: str) -> bool:
    """
    Decide whether a viewer may read a consultant's score.

    A consultant reading their own score is always denied.
    Store owners and admins may read any consultant's score.
    """
    role = Role(viewer_role)
    if role == Role.CONSULTANT and str(viewer_id) == str(target_id):
        return False
    return role in SCORE_VIEWER_ROLES


def can_recalculate(viewer_role: Role | str) -> bool:
    """Only admins may force score recalculation."""
    return Role(viewer_role) == Role.ADMIN


def can_view_statistics(viewer_role: Role | str) -> bool:
    return Role(viewer_role) == Role.ADMIN


def can_view_applications(viewer_role: Role | str, viewer_id: str, store_id: str) -> bool:
    """Admins see every store's applications; a store owner only their own."""
    role = Role(viewer_role)
    if role == Role.ADMIN:
        return True
    return role == Role.STORE_OWNER and str(viewer_id) == str(store_id)


def can_view_payment(
    viewer_role: Role | str,
    viewer_id: str,
    store_id: str,
    consultant_id: str,
) -> bool:
    """Admins, and the store or consultant the payment is split with."""
    role = Role(viewer_role)
    if role == Role.ADMIN:
        return True
    if role == Role.STORE_OWNER:
        return str(viewer_id) == str(store_id)
    if role == Role.CONSULTANT:
        return str(viewer_id) == str(consultant_id)
    return False
