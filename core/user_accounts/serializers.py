from rest_framework import serializers

from .models import LocalUser, ManagerSubstitution, PermissionGroup
from .permissions import CAPABILITY_FIELDS


class LoginSerializer(serializers.Serializer):
    """Credentials posted to the login endpoint"""
    username = serializers.CharField(max_length=255)
    password = serializers.CharField(
        write_only=True,
        allow_blank=True,
        style={'input_type': 'password'}
    )


class PermissionGroupSerializer(serializers.ModelSerializer):
    """Serializer for PermissionGroup model"""
    user_count = serializers.SerializerMethodField()

    class Meta:
        model = PermissionGroup
        fields = ['id', 'name', 'description', *CAPABILITY_FIELDS, 'user_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'user_count', 'created_at', 'updated_at']

    def get_user_count(self, obj):
        return obj.user_links.count()


class GroupSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = PermissionGroup
        fields = ['id', 'name', 'can_perform_approvals']


class LocalUserSerializer(serializers.ModelSerializer):
    """Read serializer for the admin user list"""
    groups = GroupSummarySerializer(source='permission_groups', many=True, read_only=True)
    manager_name = serializers.CharField(source='manager.display_name', read_only=True, default=None)
    has_local_password = serializers.BooleanField(read_only=True)

    class Meta:
        model = LocalUser
        fields = [
            'id', 'username', 'display_name', 'email', 'department', 'is_active',
            'manager', 'manager_name', 'groups', 'has_local_password', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class LocalUserWriteSerializer(serializers.Serializer):
    """
    Input for user create/update.
    Omitted fields are left untouched on update.
    """
    username = serializers.CharField(max_length=150, required=False)
    display_name = serializers.CharField(max_length=255, required=False)
    email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)
    department = serializers.CharField(max_length=255, required=False, allow_null=True, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)
    manager_id = serializers.IntegerField(required=False, allow_null=True)
    manager_name = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    group_ids = serializers.ListField(child=serializers.IntegerField(), required=False)
    is_active = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if self.context.get('creating'):
            if not attrs.get('username') or not attrs.get('display_name'):
                raise serializers.ValidationError('Usuário e nome são obrigatórios.')
        return attrs


class BulkStatusSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    is_active = serializers.BooleanField()


class ManagerSerializer(serializers.ModelSerializer):
    class Meta:
        model = LocalUser
        fields = ['id', 'display_name', 'email']


class ManagerSubstitutionSerializer(serializers.ModelSerializer):
    """Serializer for ManagerSubstitution model"""
    original_manager = ManagerSerializer(read_only=True)
    substitute_manager = ManagerSerializer(read_only=True)
    original_manager_id = serializers.IntegerField(write_only=True)
    substitute_manager_id = serializers.IntegerField(write_only=True)

    class Meta:
        model = ManagerSubstitution
        fields = [
            'id', 'original_manager', 'substitute_manager',
            'original_manager_id', 'substitute_manager_id',
            'start_date', 'end_date', 'created_by_username', 'created_at'
        ]
        read_only_fields = ['id', 'created_by_username', 'created_at']


class DirectoryCredentialsSerializer(serializers.Serializer):
    """Optional admin credentials for directory searches (service account otherwise)"""
    term = serializers.CharField(required=False, allow_blank=True)
    username = serializers.CharField(required=False, allow_blank=True)
    password = serializers.CharField(required=False, allow_blank=True, write_only=True)


class DirectoryEntrySerializer(serializers.Serializer):
    username = serializers.CharField()
    display_name = serializers.CharField(required=False, allow_blank=True)
    email = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    department = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    manager_name = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class DirectoryImportSerializer(serializers.Serializer):
    users = DirectoryEntrySerializer(many=True, allow_empty=False)
    group_ids = serializers.ListField(child=serializers.IntegerField(), required=False)


class EmailTestSerializer(serializers.Serializer):
    email = serializers.EmailField()
