"""
API Views for the audit log.
All endpoints require can_view_audit_log or can_access_admin_panel.
"""
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from core.audit import services
from core.audit.serializers import AuditEventSerializer
from core.user_accounts.decorators import require_capability
from core.user_accounts.permissions import Capability
from scse_project.pagination import paginated_response


AUDIT_CAPABILITIES = (Capability.VIEW_AUDIT_LOG, Capability.ACCESS_ADMIN_PANEL)


@api_view(['GET'])
@require_capability(*AUDIT_CAPABILITIES)
def audit_event_list(request):
    """
    Search the audit trail.

    GET /api/audit/
    - Query params: start_date, end_date (YYYY-MM-DD), username, action,
      entity_type, page, page_size
    - Returns: paginated events, newest first
    """
    params = request.query_params
    events = services.query_events(
        start_date=params.get('start_date'),
        end_date=params.get('end_date'),
        username=params.get('username'),
        action=params.get('action'),
        entity_type=params.get('entity_type'),
    )
    return paginated_response(request, events, AuditEventSerializer)


@api_view(['GET'])
@require_capability(*AUDIT_CAPABILITIES)
def audit_action_list(request):
    """
    GET /api/audit/actions/
    - Returns: distinct action names
    """
    return Response(services.distinct_actions(), status=status.HTTP_200_OK)


@api_view(['GET'])
@require_capability(*AUDIT_CAPABILITIES)
def audit_entity_type_list(request):
    """
    GET /api/audit/entity-types/
    - Returns: distinct entity types
    """
    return Response(services.distinct_entity_types(), status=status.HTTP_200_OK)
