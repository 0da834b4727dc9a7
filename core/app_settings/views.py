"""
API Views for application settings (admin panel).
"""
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from core.app_settings import services
from core.app_settings.serializers import AppSettingSerializer, AppSettingUpdateSerializer
from core.user_accounts.decorators import require_capability
from core.user_accounts.permissions import Capability


@api_view(['GET', 'PUT'])
@require_capability(Capability.MANAGE_CONFIG, Capability.ACCESS_ADMIN_PANEL)
def app_setting_list(request):
    """
    List or update configuration.

    GET /api/admin/config/
    - Returns every setting except secrets

    PUT /api/admin/config/
    - Request body: [{"key": "...", "value": "..."}, ...] or a single object
    - Blank secret values keep the stored secret
    """
    if request.method == 'GET':
        serializer = AppSettingSerializer(services.list_settings(), many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    many = isinstance(request.data, list)
    serializer = AppSettingUpdateSerializer(data=request.data, many=many)
    serializer.is_valid(raise_exception=True)

    updated = services.update_settings(serializer.validated_data, request.user.username)
    visible = [setting for setting in updated if not setting.is_secret]
    return Response({
        'status': 'success',
        'message': f'{len(updated)} configuração(ões) atualizada(s).',
        'data': AppSettingSerializer(visible, many=True).data,
    }, status=status.HTTP_200_OK)
