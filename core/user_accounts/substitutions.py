"""
Substitution resolver.

Finds the manager temporarily authorized to approve on behalf of another.
"""
import logging
from typing import Optional

from django.utils import timezone

from core.user_accounts.dtos import Delegate
from core.user_accounts.models import ManagerSubstitution

logger = logging.getLogger(__name__)


def find_active_delegate(original_manager_email, today=None) -> Optional[Delegate]:
    """
    Return the active delegate of the manager owning original_manager_email.

    A window matches when start_date <= today <= end_date and the substitute
    is active. Overlapping windows resolve to the most recently created one.
    Lookup errors are logged and yield None.
    """
    if not original_manager_email:
        return None
    if today is None:
        today = timezone.localdate()

    try:
        substitution = (
            ManagerSubstitution.objects
            .for_original_email(original_manager_email.strip())
            .active_on(today)
            .select_related('substitute_manager')
            .order_by('-created_at', '-id')
            .first()
        )
    except Exception:
        logger.exception(f"Failed to look up substitute for {original_manager_email}")
        return None

    if substitution is None:
        return None

    substitute = substitution.substitute_manager
    logger.info(
        f"Active substitution for {original_manager_email} on {today}: {substitute.email or substitute.username}"
    )
    return Delegate(email=substitute.email, display_name=substitute.display_name)
