"""
API Views for inter-factory transfers.

Gate operators send the gate they are operating at in the
X-Selected-Portaria header; it scopes listings and is checked against the
transfer's origin (exit) or destination (arrival) gate.
"""
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from core.audit.logger import EntityType
from core.audit.serializers import AuditEventSerializer
from core.audit.services import entity_events
from core.user_accounts.dtos import Actor
from scse_project.pagination import paginated_response
from scse_project.response_formatter import success_response

from .managers import TransferManager
from .models import TransferProcess
from .serializers import (
    ArrivalDecisionSerializer,
    ExitDecisionSerializer,
    TransferInputSerializer,
    TransferSerializer,
)

OPERATING_GATE_HEADER = 'HTTP_X_SELECTED_PORTARIA'


def operating_gate(request):
    """Gate sent by the client, or None when the header is missing or blank."""
    value = request.META.get(OPERATING_GATE_HEADER, '').strip()
    return value or None


@api_view(['GET', 'POST'])
def transfer_list(request):
    """
    List or create transfers.

    GET /api/transfers/
    - Headers: X-Selected-Portaria (gate operators)
    - Returns: transfers visible to the caller, newest first (paginated)

    POST /api/transfers/
    - Request body: { "requested_exit_at", "origin_gate", "destination_gate", "invoice_ref",
      "requester_name", "sector", "manager_name", "transport_mode",
      "vehicle_type"?, "plate"?, "carrier_name"?, "attachment_url"? }
    - Returns: Created transfer
    """
    actor = Actor.from_session(request.user)

    if request.method == 'GET':
        queryset = TransferManager.visible_to(actor, operating_gate(request))
        return paginated_response(request, queryset, TransferSerializer)

    serializer = TransferInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    process = TransferManager.create(serializer.validated_data, actor)
    return success_response(
        data=TransferSerializer(process).data,
        message=f'Transferência #{process.pk} criada com sucesso.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['GET'])
def transfer_summary(request):
    """
    GET /api/transfers/summary/
    - Headers: X-Selected-Portaria (gate operators)
    - Returns: { "counts": {<status>: n, ...}, "total": n } over the transfers visible to the caller
    """
    counts = TransferManager.counts_by_status(Actor.from_session(request.user), operating_gate(request))
    return success_response(data={'counts': counts, 'total': sum(counts.values())})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
def transfer_detail(request, pk):
    """
    GET /api/transfers/<id>/       - transfer plus its audit trail
    PUT/PATCH /api/transfers/<id>/ - edit while in progress
    DELETE /api/transfers/<id>/    - remove while in progress
    """
    actor = Actor.from_session(request.user)

    if request.method == 'GET':
        process = TransferProcess.objects.get(pk=pk)
        events = entity_events(EntityType.TRANSFER, process.process_id)
        return Response({
            **TransferSerializer(process).data,
            'events': AuditEventSerializer(events, many=True).data,
        }, status=status.HTTP_200_OK)

    if request.method == 'DELETE':
        TransferManager.delete(pk, actor)
        return success_response(message='Transferência excluída com sucesso.')

    serializer = TransferInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    process = TransferManager.update(pk, serializer.validated_data, actor)
    return success_response(data=TransferSerializer(process).data, message='Transferência atualizada.')


@api_view(['POST'])
def transfer_exit(request, pk):
    """
    POST /api/transfers/<id>/exit/
    - Headers: X-Selected-Portaria
    - Request body: { "exit_decision": "Aprovado" | "NaoAutorizado", "actual_exit_at"?, "exit_notes"? }
    """
    serializer = ExitDecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    process = TransferManager.register_exit(
        pk,
        Actor.from_session(request.user),
        data['exit_decision'],
        operating_gate=operating_gate(request),
        exit_at=data.get('actual_exit_at'),
        notes=data.get('exit_notes'),
    )
    return success_response(
        data=TransferSerializer(process).data,
        message=f'Saída registrada. Novo status: {process.get_status_display()}.'
    )


@api_view(['POST'])
def transfer_arrival(request, pk):
    """
    POST /api/transfers/<id>/arrival/
    - Headers: X-Selected-Portaria
    - Request body: { "arrival_decision": "Aprovado" | "Problema", "actual_arrival_at"?, "arrival_notes"? }
    """
    serializer = ArrivalDecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    process = TransferManager.register_arrival(
        pk,
        Actor.from_session(request.user),
        data['arrival_decision'],
        operating_gate=operating_gate(request),
        arrival_at=data.get('actual_arrival_at'),
        notes=data.get('arrival_notes'),
    )
    return success_response(data=TransferSerializer(process).data, message='Chegada registrada.')
