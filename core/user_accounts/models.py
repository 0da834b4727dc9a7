"""
User Account Models
Local users, permission groups and manager substitution windows.
"""
from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.core.exceptions import ValidationError
from django.db import models

from core.base.exceptions import ReferentialConflict
from core.base.models import TimestampMixin


ADMIN_GROUP_NAME = 'Administradores'
PROTECTED_USERNAME = 'admin'


class LocalUserManager(BaseUserManager):
    """
    Manager for LocalUser.
    A user created without password is a directory-only identity.
    """
    use_in_migrations = True

    def create_user(self, username, display_name, password=None, **extra_fields):
        """
        Create and save a local user.

        Args:
            username: Login name (unique)
            display_name: Full name shown in the UI and in approval e-mails
            password: Local password. None creates a directory-only user.
            **extra_fields: email, department, manager, is_active

        Returns:
            LocalUser: The created user instance
        """
        if not username:
            raise ValueError('Username is required')
        if not display_name:
            raise ValueError('Display name is required')

        email = extra_fields.pop('email', None)
        if email:
            email = self.normalize_email(email)

        user = self.model(
            username=username,
            display_name=display_name,
            email=email or None,
            **extra_fields
        )
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, username, display_name, password=None, **extra_fields):
        """Create a user linked to the administrators group."""
        user = self.create_user(username, display_name, password=password, **extra_fields)
        group, _ = PermissionGroup.objects.get_or_create(
            name=ADMIN_GROUP_NAME,
            defaults=PermissionGroup.full_access_defaults()
        )
        UserGroupLink.objects.get_or_create(user=user, group=group)
        return user


class LocalUser(AbstractBaseUser, TimestampMixin):
    """
    Identity known to SCSE.

    Users without a usable password authenticate against the directory
    service; permissions always come from the linked permission groups.
    """
    username = models.CharField(max_length=150, unique=True, db_index=True)
    display_name = models.CharField(max_length=255)
    email = models.EmailField(null=True, blank=True)
    department = models.CharField(max_length=255, null=True, blank=True)
    is_active = models.BooleanField(default=True)

    manager = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='subordinates',
        help_text="Immediate manager of this user"
    )

    permission_groups = models.ManyToManyField(
        'PermissionGroup',
        through='UserGroupLink',
        related_name='users',
        blank=True
    )

    objects = LocalUserManager()

    USERNAME_FIELD = 'username'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['display_name']

    class Meta:
        db_table = 'local_users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['display_name']

    def __str__(self):
        return f"{self.display_name} ({self.username})"

    @property
    def has_local_password(self):
        """False for directory-only identities."""
        return self.has_usable_password()

    def delete(self, *args, **kwargs):
        """
        Block deletion of users still referenced as manager or still linked to groups.
        """
        if self.subordinates.exists():
            raise ReferentialConflict(
                'Não é possível excluir: este usuário é gestor de outros usuários.'
            )
        if self.group_links.exists():
            raise ReferentialConflict(
                'Não é possível excluir: remova o usuário de todos os grupos primeiro.'
            )
        return super().delete(*args, **kwargs)


class PermissionGroup(TimestampMixin):
    """
    Named bundle of capability flags.
    A user's effective permissions are the OR of all of their groups.
    """
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True, default='')

    can_access_admin_panel = models.BooleanField(default=False)
    can_manage_users = models.BooleanField(default=False)
    can_manage_groups = models.BooleanField(default=False)
    can_manage_config = models.BooleanField(default=False)
    can_perform_approvals = models.BooleanField(default=False)
    can_access_gate_control = models.BooleanField(default=False)
    can_create_machine_exit = models.BooleanField(default=False)
    can_create_transfer = models.BooleanField(default=False)
    can_view_audit_log = models.BooleanField(default=False)

    class Meta:
        db_table = 'permission_groups'
        verbose_name = 'Permission Group'
        verbose_name_plural = 'Permission Groups'
        ordering = ['name']

    def __str__(self):
        return self.name

    @staticmethod
    def full_access_defaults():
        from core.user_accounts.permissions import Capability
        return {capability.value: True for capability in Capability}

    def delete(self, *args, **kwargs):
        if self.name == ADMIN_GROUP_NAME:
            raise ReferentialConflict(
                f'O grupo "{ADMIN_GROUP_NAME}" é protegido e não pode ser excluído.'
            )
        linked = self.user_links.count()
        if linked:
            raise ReferentialConflict(
                f'Não é possível excluir: o grupo está associado a {linked} usuário(s).'
            )
        return super().delete(*args, **kwargs)


class UserGroupLink(models.Model):
    """Membership of a user in a permission group."""
    user = models.ForeignKey(LocalUser, on_delete=models.CASCADE, related_name='group_links')
    group = models.ForeignKey(PermissionGroup, on_delete=models.PROTECT, related_name='user_links')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'user_group_links'
        unique_together = [('user', 'group')]

    def __str__(self):
        return f"{self.user.username} -> {self.group.name}"


class ManagerSubstitutionQuerySet(models.QuerySet):

    def active_on(self, reference_date):
        """Windows covering reference_date (both ends inclusive) whose substitute is active."""
        return self.filter(
            start_date__lte=reference_date,
            end_date__gte=reference_date,
            substitute_manager__is_active=True
        )

    def for_original_email(self, email):
        return self.filter(original_manager__email__iexact=email)


class ManagerSubstitution(models.Model):
    """
    Scheduled delegation window: approvals routed to original_manager may
    also be decided by substitute_manager between start_date and end_date.

    Overlapping windows are allowed; the most recently created one wins.
    """
    original_manager = models.ForeignKey(
        LocalUser,
        on_delete=models.CASCADE,
        related_name='substitutions_given'
    )
    substitute_manager = models.ForeignKey(
        LocalUser,
        on_delete=models.CASCADE,
        related_name='substitutions_received'
    )
    start_date = models.DateField()
    end_date = models.DateField()
    created_by_username = models.CharField(max_length=150, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ManagerSubstitutionQuerySet.as_manager()

    class Meta:
        db_table = 'manager_substitutions'
        verbose_name = 'Manager Substitution'
        verbose_name_plural = 'Manager Substitutions'
        ordering = ['-start_date']

    def __str__(self):
        return (
            f"{self.original_manager.display_name} -> {self.substitute_manager.display_name} "
            f"({self.start_date} a {self.end_date})"
        )

    def clean(self):
        errors = {}
        if self.start_date and self.end_date and self.start_date > self.end_date:
            errors['end_date'] = 'A data de início não pode ser posterior à data de fim.'
        if self.original_manager_id and self.original_manager_id == self.substitute_manager_id:
            errors['substitute_manager'] = 'O gestor substituto deve ser diferente do gestor original.'
        elif self.substitute_manager_id and not self.substitute_manager.is_active:
            errors['substitute_manager'] = 'O gestor substituto deve estar ativo.'
        if errors:
            raise ValidationError(errors)

    def covers(self, reference_date):
        return self.start_date <= reference_date <= self.end_date
