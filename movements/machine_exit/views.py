"""
API Views for machine exits.

The views only parse input and shape output; every rule lives in
MachineExitManager. Domain exceptions propagate to
scse_project.response_formatter.custom_exception_handler.
"""
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from core.audit.logger import EntityType
from core.audit.serializers import AuditEventSerializer
from core.audit.services import entity_events
from core.user_accounts.decorators import require_capability
from core.user_accounts.dtos import Actor
from core.user_accounts.permissions import Capability
from scse_project.pagination import paginated_response
from scse_project.response_formatter import success_response

from .managers import MachineExitManager
from .models import MachineExitProcess
from .serializers import (
    GateExitSerializer,
    MachineExitInputSerializer,
    MachineExitSerializer,
    RejectSerializer,
    ReturnSerializer,
)


@api_view(['GET', 'POST'])
def machine_exit_list(request):
    """
    List or create machine exits.

    GET /api/machine-exits/
    - Returns: processes visible to the caller, newest first (paginated)

    POST /api/machine-exits/
    - Request body: { "kind", "requester_name", "responsible_area", "approver_manager_email",
      "material_description", "quantity", "reason", "submitted_at"?, "expected_return_by"?,
      "gate_name"?, "invoice_ref"?, "attachment_url"? }
    - Returns: Created process
    """
    actor = Actor.from_session(request.user)

    if request.method == 'GET':
        return paginated_response(request, MachineExitManager.visible_to(actor), MachineExitSerializer)

    serializer = MachineExitInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    process = MachineExitManager.create(serializer.validated_data, actor)
    return success_response(
        data=MachineExitSerializer(process).data,
        message=f'Solicitação #{process.pk} criada com sucesso.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['GET'])
def machine_exit_summary(request):
    """
    GET /api/machine-exits/summary/
    - Returns: { "counts": {<status>: n, ...}, "total": n } over the processes visible to the caller
    """
    counts = MachineExitManager.counts_by_status(Actor.from_session(request.user))
    return success_response(data={'counts': counts, 'total': sum(counts.values())})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
def machine_exit_detail(request, pk):
    """
    GET /api/machine-exits/<id>/     - process plus its audit trail
    PUT/PATCH /api/machine-exits/<id>/ - edit while waiting for approval
    DELETE /api/machine-exits/<id>/  - remove while waiting for approval or rejected
    """
    actor = Actor.from_session(request.user)

    if request.method == 'GET':
        process = MachineExitProcess.objects.get(pk=pk)
        events = entity_events(EntityType.MACHINE_EXIT, process.process_id)
        return Response({
            **MachineExitSerializer(process).data,
            'events': AuditEventSerializer(events, many=True).data,
        }, status=status.HTTP_200_OK)

    if request.method == 'DELETE':
        MachineExitManager.delete(pk, actor)
        return success_response(message='Solicitação excluída com sucesso.')

    serializer = MachineExitInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    process = MachineExitManager.update(pk, serializer.validated_data, actor)
    return success_response(data=MachineExitSerializer(process).data, message='Solicitação atualizada.')


@api_view(['POST'])
def machine_exit_approve(request, pk):
    """POST /api/machine-exits/<id>/approve/"""
    process = MachineExitManager.approve(pk, Actor.from_session(request.user))
    return success_response(data=MachineExitSerializer(process).data, message='Solicitação aprovada.')


@api_view(['POST'])
def machine_exit_reject(request, pk):
    """
    POST /api/machine-exits/<id>/reject/
    - Request body: { "rejection_reason": "..." }
    """
    serializer = RejectSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    process = MachineExitManager.reject(
        pk,
        serializer.validated_data['rejection_reason'],
        Actor.from_session(request.user),
    )
    return success_response(data=MachineExitSerializer(process).data, message='Solicitação rejeitada.')


@api_view(['POST'])
@require_capability(Capability.ACCESS_GATE_CONTROL, Capability.ACCESS_ADMIN_PANEL)
def machine_exit_gate_exit(request, pk):
    """
    POST /api/machine-exits/<id>/gate-exit/
    - Request body: { "actual_exit_at"? } (defaults to now)
    """
    serializer = GateExitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    process = MachineExitManager.register_gate_exit(
        pk,
        Actor.from_session(request.user),
        exit_at=serializer.validated_data.get('actual_exit_at'),
    )
    return success_response(data=MachineExitSerializer(process).data, message='Saída registrada na portaria.')


@api_view(['POST'])
def machine_exit_return(request, pk):
    """
    POST /api/machine-exits/<id>/return/
    - Request body: { "actual_return_at"?, "return_invoice_ref"?, "return_attachment_url"?, "return_notes"? }
    """
    serializer = ReturnSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    process = MachineExitManager.register_return(
        pk,
        Actor.from_session(request.user),
        returned_at=data.get('actual_return_at'),
        invoice_ref=data.get('return_invoice_ref'),
        attachment_url=data.get('return_attachment_url'),
        notes=data.get('return_notes'),
    )
    return success_response(data=MachineExitSerializer(process).data, message='Retorno registrado.')
