import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import core.user_accounts.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='LocalUser',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when record was last modified')),
                ('username', models.CharField(db_index=True, max_length=150, unique=True)),
                ('display_name', models.CharField(max_length=255)),
                ('email', models.EmailField(blank=True, max_length=254, null=True)),
                ('department', models.CharField(blank=True, max_length=255, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('manager', models.ForeignKey(
                    blank=True,
                    help_text='Immediate manager of this user',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='subordinates',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'User',
                'verbose_name_plural': 'Users',
                'db_table': 'local_users',
                'ordering': ['display_name'],
            },
            managers=[
                ('objects', core.user_accounts.models.LocalUserManager()),
            ],
        ),
        migrations.CreateModel(
            name='PermissionGroup',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when record was last modified')),
                ('name', models.CharField(max_length=100, unique=True)),
                ('description', models.TextField(blank=True, default='')),
                ('can_access_admin_panel', models.BooleanField(default=False)),
                ('can_manage_users', models.BooleanField(default=False)),
                ('can_manage_groups', models.BooleanField(default=False)),
                ('can_manage_config', models.BooleanField(default=False)),
                ('can_perform_approvals', models.BooleanField(default=False)),
                ('can_access_gate_control', models.BooleanField(default=False)),
                ('can_create_machine_exit', models.BooleanField(default=False)),
                ('can_create_transfer', models.BooleanField(default=False)),
                ('can_view_audit_log', models.BooleanField(default=False)),
            ],
            options={
                'verbose_name': 'Permission Group',
                'verbose_name_plural': 'Permission Groups',
                'db_table': 'permission_groups',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='UserGroupLink',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('group', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='user_links',
                    to='user_accounts.permissiongroup',
                )),
                ('user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='group_links',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'db_table': 'user_group_links',
                'unique_together': {('user', 'group')},
            },
        ),
        migrations.AddField(
            model_name='localuser',
            name='permission_groups',
            field=models.ManyToManyField(
                blank=True,
                related_name='users',
                through='user_accounts.UserGroupLink',
                to='user_accounts.permissiongroup',
            ),
        ),
        migrations.CreateModel(
            name='ManagerSubstitution',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('created_by_username', models.CharField(blank=True, default='', max_length=150)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('original_manager', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='substitutions_given',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('substitute_manager', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='substitutions_received',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Manager Substitution',
                'verbose_name_plural': 'Manager Substitutions',
                'db_table': 'manager_substitutions',
                'ordering': ['-start_date'],
            },
        ),
    ]
