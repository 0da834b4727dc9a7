import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='MachineExitProcess',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when record was last modified')),
                ('process_id', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('kind', models.CharField(choices=[('maintenance', 'Manutenção'), ('loan', 'Empréstimo')], max_length=20)),
                ('status', models.CharField(
                    choices=[
                        ('pending_approval', 'Aguardando Aprovação'),
                        ('pending_gate', 'Aguardando Portaria'),
                        ('in_maintenance', 'Em Manutenção'),
                        ('completed', 'Concluído'),
                        ('rejected', 'Rejeitado'),
                    ],
                    db_index=True,
                    default='pending_approval',
                    max_length=20,
                )),
                ('requester_name', models.CharField(max_length=255)),
                ('responsible_area', models.CharField(max_length=255)),
                ('approver_manager_email', models.EmailField(max_length=254)),
                ('material_description', models.TextField()),
                ('quantity', models.PositiveIntegerField()),
                ('reason', models.TextField()),
                ('submitted_at', models.DateField()),
                ('expected_return_by', models.DateField(blank=True, null=True)),
                ('gate_name', models.CharField(blank=True, max_length=100, null=True)),
                ('invoice_ref', models.CharField(blank=True, max_length=100, null=True)),
                ('attachment_url', models.CharField(blank=True, max_length=500, null=True)),
                ('approved_by_username', models.CharField(blank=True, max_length=150, null=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True, null=True)),
                ('actual_exit_at', models.DateTimeField(blank=True, null=True)),
                ('exit_guard_username', models.CharField(blank=True, max_length=150, null=True)),
                ('actual_return_at', models.DateTimeField(blank=True, null=True)),
                ('return_invoice_ref', models.CharField(blank=True, max_length=100, null=True)),
                ('return_attachment_url', models.CharField(blank=True, max_length=500, null=True)),
                ('return_notes', models.TextField(blank=True, null=True)),
                ('return_confirmed_by_username', models.CharField(blank=True, max_length=150, null=True)),
                ('created_by_username', models.CharField(db_index=True, max_length=150)),
            ],
            options={
                'verbose_name': 'Machine Exit',
                'verbose_name_plural': 'Machine Exits',
                'db_table': 'machine_exit_processes',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
