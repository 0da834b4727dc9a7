"""
API Views for authentication and the user administration panel.
Provides REST API endpoints for login, session info, users, permission groups,
manager substitutions, directory import/sync and the SMTP test.
"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.notifications.notifier import send_test_email
from core.user_accounts import auth_service, services
from core.user_accounts.decorators import require_capability
from core.user_accounts.models import LocalUser, PermissionGroup
from core.user_accounts.permissions import Capability
from core.user_accounts.serializers import (
    BulkStatusSerializer,
    DirectoryCredentialsSerializer,
    DirectoryImportSerializer,
    EmailTestSerializer,
    LocalUserSerializer,
    LocalUserWriteSerializer,
    LoginSerializer,
    ManagerSerializer,
    ManagerSubstitutionSerializer,
    PermissionGroupSerializer,
)
from core.user_accounts.tokens import issue_session_token
from scse_project.pagination import auto_paginate
from scse_project.response_formatter import error_response, success_response

logger = logging.getLogger(__name__)


USER_ADMIN = (Capability.MANAGE_USERS, Capability.ACCESS_ADMIN_PANEL)
GROUP_ADMIN = (Capability.MANAGE_GROUPS, Capability.ACCESS_ADMIN_PANEL)
CONFIG_ADMIN = (Capability.MANAGE_CONFIG, Capability.ACCESS_ADMIN_PANEL)


# ============================================================================
# Authentication Views
# ============================================================================

@api_view(['POST'])
@permission_classes([AllowAny])
def login(request):
    """
    Public endpoint for login (local password or directory bind).

    POST /api/auth/login/
    - Request body: { "username": "...", "password": "..." }
    - Returns: { "token": "...", "user": <session claims> }
    """
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    claims = auth_service.authenticate(
        serializer.validated_data['username'],
        serializer.validated_data['password'],
    )
    return success_response(
        data={
            'token': issue_session_token(claims),
            'user': claims.to_dict(),
        },
        message='Login realizado com sucesso.'
    )


@api_view(['GET'])
def me(request):
    """
    GET /api/auth/me/
    - Returns: claims of the current session token
    """
    return Response(request.user.claims(), status=status.HTTP_200_OK)


# ============================================================================
# User Administration Views
# ============================================================================

@api_view(['GET', 'POST'])
@require_capability(*USER_ADMIN)
@auto_paginate
def admin_user_list(request):
    """
    List and create users.

    GET /api/admin/users/
    - Returns: every local user with groups and manager (paginated)

    POST /api/admin/users/
    - Request body: { "username", "display_name", "email"?, "department"?,
      "password"? (omit for directory-only), "manager_id"?, "group_ids"? }
    - Returns: Created user data
    """
    if request.method == 'GET':
        serializer = LocalUserSerializer(services.list_users(), many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    serializer = LocalUserWriteSerializer(data=request.data, context={'creating': True})
    serializer.is_valid(raise_exception=True)
    user = services.create_user(serializer.validated_data, request.user.username)
    return success_response(
        data=LocalUserSerializer(user).data,
        message='Usuário criado com sucesso.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@require_capability(*USER_ADMIN)
def admin_user_detail(request, user_id):
    """
    GET/PUT/PATCH/DELETE /api/admin/users/<id>/

    DELETE is refused for the caller, the 'admin' account, the last active
    administrator, managers of other users and users still linked to groups.
    """
    if request.method == 'GET':
        user = LocalUser.objects.get(pk=user_id)
        return Response(LocalUserSerializer(user).data, status=status.HTTP_200_OK)

    if request.method == 'DELETE':
        services.delete_user(user_id, request.user.username, actor_id=request.user.id)
        return success_response(message='Usuário excluído com sucesso.')

    serializer = LocalUserWriteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = services.update_user(
        user_id,
        serializer.validated_data,
        request.user.username,
        actor_id=request.user.id,
    )
    return success_response(data=LocalUserSerializer(user).data, message='Usuário atualizado com sucesso.')


@api_view(['POST'])
@require_capability(*USER_ADMIN)
def admin_user_bulk_status(request):
    """
    POST /api/admin/users/bulk-status/
    - Request body: { "user_ids": [..], "is_active": true|false }
    - The caller and the 'admin' account are skipped
    """
    serializer = BulkStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = services.bulk_set_active(
        serializer.validated_data['user_ids'],
        serializer.validated_data['is_active'],
        request.user.username,
        actor_id=request.user.id,
    )
    return success_response(data={'count': result['count']}, message=result['message'])


@api_view(['GET'])
def manager_list(request):
    """
    GET /api/admin/managers/
    - Returns: active users that can approve (for the approver and substitution pickers)
    """
    serializer = ManagerSerializer(services.list_managers(), many=True)
    return Response(serializer.data, status=status.HTTP_200_OK)


# ============================================================================
# Permission Group Views
# ============================================================================

@api_view(['GET', 'POST'])
@require_capability(*GROUP_ADMIN)
def admin_group_list(request):
    """
    GET/POST /api/admin/groups/
    - POST body: { "name", "description"?, "can_*": bool, ... }
    """
    if request.method == 'GET':
        serializer = PermissionGroupSerializer(PermissionGroup.objects.all(), many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    serializer = PermissionGroupSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    group = services.create_group(serializer.validated_data, request.user.username)
    return success_response(
        data=PermissionGroupSerializer(group).data,
        message='Grupo criado com sucesso.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@require_capability(*GROUP_ADMIN)
def admin_group_detail(request, group_id):
    """
    GET/PUT/PATCH/DELETE /api/admin/groups/<id>/

    DELETE is refused for "Administradores" and for groups linked to users.
    """
    if request.method == 'GET':
        group = PermissionGroup.objects.get(pk=group_id)
        return Response(PermissionGroupSerializer(group).data, status=status.HTTP_200_OK)

    if request.method == 'DELETE':
        services.delete_group(group_id, request.user.username)
        return success_response(message='Grupo excluído com sucesso.')

    group = PermissionGroup.objects.get(pk=group_id)
    serializer = PermissionGroupSerializer(group, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    group = services.update_group(group_id, serializer.validated_data, request.user.username)
    return success_response(data=PermissionGroupSerializer(group).data, message='Grupo atualizado com sucesso.')


# ============================================================================
# Manager Substitution Views
# ============================================================================

@api_view(['GET', 'POST'])
@require_capability(*USER_ADMIN)
def substitution_list(request):
    """
    GET/POST /api/admin/substitutions/
    - POST body: { "original_manager_id", "substitute_manager_id", "start_date", "end_date" }
    """
    if request.method == 'GET':
        serializer = ManagerSubstitutionSerializer(services.list_substitutions(), many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    serializer = ManagerSubstitutionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    substitution = services.create_substitution(serializer.validated_data, request.user.username)
    return success_response(
        data=ManagerSubstitutionSerializer(substitution).data,
        message='Substituição criada com sucesso.',
        status_code=status.HTTP_201_CREATED
    )


@api_view(['DELETE'])
@require_capability(*USER_ADMIN)
def substitution_detail(request, substitution_id):
    """DELETE /api/admin/substitutions/<id>/"""
    services.delete_substitution(substitution_id, request.user.username)
    return success_response(message='Substituição deletada.')


# ============================================================================
# Directory Views
# ============================================================================

@api_view(['POST'])
@require_capability(*CONFIG_ADMIN)
def directory_test(request):
    """
    POST /api/admin/directory/test/
    - Binds with the configured service account
    """
    services.test_directory_connection(request.user.username)
    return success_response(message='Conexão com o AD bem-sucedida.')


@api_view(['POST'])
@require_capability(*USER_ADMIN)
def directory_search(request):
    """
    POST /api/admin/directory/search/
    - Request body: { "term"?, "username"?, "password"? }
    - Without username/password the service account is used
    """
    serializer = DirectoryCredentialsSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    people = services.search_directory_people(
        term=data.get('term') or None,
        username=data.get('username') or None,
        password=data.get('password') or None,
    )
    return Response(people, status=status.HTTP_200_OK)


@api_view(['POST'])
@require_capability(*USER_ADMIN)
def directory_import(request):
    """
    POST /api/admin/directory/import/
    - Request body: { "users": [{"username", "display_name", "email", "department", "manager_name"}],
      "group_ids"? }
    """
    serializer = DirectoryImportSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = services.import_directory_users(
        serializer.validated_data['users'],
        request.user.username,
        group_ids=serializer.validated_data.get('group_ids'),
    )
    return success_response(
        data=result,
        message=f"{len(result['created'])} usuário(s) importado(s).",
        status_code=status.HTTP_201_CREATED
    )


@api_view(['POST'])
@require_capability(*USER_ADMIN)
def directory_sync(request):
    """
    POST /api/admin/directory/sync/
    - Runs the same synchronization pass as the scheduled command
    """
    result = services.sync_directory_users(request.user.username)
    return success_response(data=result, message=result['message'])


# ============================================================================
# E-mail
# ============================================================================

@api_view(['POST'])
@require_capability(*CONFIG_ADMIN)
def email_test(request):
    """
    POST /api/admin/email/test/
    - Request body: { "email": "destinatario@empresa.com" }
    """
    serializer = EmailTestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    recipient = serializer.validated_data['email']

    result = send_test_email(recipient, request.user.username)
    if not result.delivered:
        return error_response(
            f'Falha ao enviar e-mail de teste: {result.error}',
            status_code=status.HTTP_502_BAD_GATEWAY
        )
    return success_response(message=f'E-mail de teste enviado para {recipient}.')
