import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='TransferProcess',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when record was last modified')),
                ('process_id', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('status', models.CharField(
                    choices=[
                        ('in_progress', 'Em andamento'),
                        ('in_transit', 'Em trânsito'),
                        ('completed', 'Concluído'),
                        ('cancelled', 'Cancelado'),
                    ],
                    db_index=True,
                    default='in_progress',
                    max_length=20,
                )),
                ('requester_name', models.CharField(max_length=255)),
                ('sector', models.CharField(max_length=255)),
                ('manager_name', models.CharField(max_length=255)),
                ('requested_exit_at', models.DateTimeField()),
                ('invoice_ref', models.CharField(max_length=100)),
                ('attachment_url', models.CharField(blank=True, max_length=500, null=True)),
                ('transport_mode', models.CharField(max_length=100)),
                ('vehicle_type', models.CharField(blank=True, max_length=100, null=True)),
                ('plate', models.CharField(blank=True, max_length=20, null=True)),
                ('carrier_name', models.CharField(blank=True, max_length=255, null=True)),
                ('origin_gate', models.CharField(db_index=True, max_length=100)),
                ('destination_gate', models.CharField(db_index=True, max_length=100)),
                ('exit_guard_username', models.CharField(blank=True, max_length=150, null=True)),
                ('actual_exit_at', models.DateTimeField(blank=True, null=True)),
                ('exit_decision', models.CharField(
                    blank=True, choices=[('Aprovado', 'Aprovado'), ('NaoAutorizado', 'Não autorizado')],
                    max_length=20, null=True,
                )),
                ('exit_notes', models.TextField(blank=True, null=True)),
                ('arrival_guard_username', models.CharField(blank=True, max_length=150, null=True)),
                ('actual_arrival_at', models.DateTimeField(blank=True, null=True)),
                ('arrival_decision', models.CharField(
                    blank=True, choices=[('Aprovado', 'Aprovado'), ('Problema', 'Problema')],
                    max_length=20, null=True,
                )),
                ('arrival_notes', models.TextField(blank=True, null=True)),
                ('created_by_username', models.CharField(db_index=True, max_length=150)),
            ],
            options={
                'verbose_name': 'Transfer',
                'verbose_name_plural': 'Transfers',
                'db_table': 'transfer_processes',
                'ordering': ['-created_at', '-id'],
            },
        ),
    ]
