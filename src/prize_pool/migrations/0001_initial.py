import uuid

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('hackathon', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='EmergencyStopState',
            fields=[
                ('id', models.PositiveSmallIntegerField(default=1, primary_key=True, serialize=False)),
                ('active', models.BooleanField(default=False)),
                ('activated_date', models.DateTimeField(blank=True, null=True)),
                ('activated_by', models.CharField(blank=True, default='', max_length=42)),
                ('deactivated_date', models.DateTimeField(blank=True, null=True)),
                ('deactivated_by', models.CharField(blank=True, default='', max_length=42)),
                ('updated_date', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='EmergencyStopReason',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('admin_address', models.CharField(max_length=42)),
                ('reason', models.TextField()),
                ('created_date', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['created_date', 'id'],
            },
        ),
        migrations.CreateModel(
            name='DistributionJob',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_date', models.DateTimeField(auto_now_add=True)),
                ('updated_date', models.DateTimeField(auto_now=True)),
                ('total_prize_pool', models.DecimalField(decimal_places=0, help_text="Prize pool in the token's smallest unit", max_digits=78)),
                ('status', models.CharField(choices=[('SCHEDULED', 'Scheduled'), ('PROCESSING', 'Processing'), ('COMPLETED', 'Completed'), ('FAILED', 'Failed'), ('CANCELLED', 'Cancelled')], default='SCHEDULED', max_length=16)),
                ('scheduled_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('retry_count', models.PositiveIntegerField(default=0)),
                ('last_error', models.TextField(blank=True, default='')),
                ('refund_requested', models.BooleanField(default=False)),
                ('completed_date', models.DateTimeField(blank=True, null=True)),
                ('hackathon', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='distribution_jobs', to='hackathon.hackathon')),
            ],
            options={
                'indexes': [models.Index(fields=['status'], name='distribution_job_status_idx')],
            },
        ),
        migrations.AddConstraint(
            model_name='distributionjob',
            constraint=models.UniqueConstraint(condition=models.Q(('status__in', ['SCHEDULED', 'PROCESSING'])), fields=('hackathon',), name='unique_open_distribution_job_per_hackathon'),
        ),
        migrations.CreateModel(
            name='DistributionRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('recipient_address', models.CharField(max_length=42)),
                ('position', models.PositiveIntegerField(help_text='1-based rank')),
                ('amount', models.DecimalField(decimal_places=0, max_digits=78)),
                ('percentage', models.PositiveIntegerField(default=0, help_text='Share of the prize pool in basis points')),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('COMPLETED', 'Completed'), ('FAILED', 'Failed'), ('CANCELLED', 'Cancelled')], default='PENDING', max_length=16)),
                ('tx_hash', models.CharField(blank=True, max_length=66, null=True)),
                ('executed_at', models.DateTimeField(blank=True, null=True)),
                ('attempt_count', models.PositiveIntegerField(default=0)),
                ('next_attempt_at', models.DateTimeField(blank=True, null=True)),
                ('custom_gas_price', models.DecimalField(blank=True, decimal_places=0, max_digits=78, null=True)),
                ('custom_gas_limit', models.PositiveBigIntegerField(blank=True, null=True)),
                ('last_error', models.TextField(blank=True, default='')),
                ('created_date', models.DateTimeField(auto_now_add=True)),
                ('updated_date', models.DateTimeField(auto_now=True)),
                ('hackathon', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='distribution_records', to='hackathon.hackathon')),
                ('job', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='records', to='prize_pool.distributionjob')),
            ],
            options={
                'ordering': ['job_id', 'position'],
                'indexes': [models.Index(fields=['status'], name='distribution_record_status_idx')],
            },
        ),
        migrations.AddConstraint(
            model_name='distributionrecord',
            constraint=models.UniqueConstraint(fields=('job', 'position'), name='unique_distribution_record_position'),
        ),
        migrations.AddConstraint(
            model_name='distributionrecord',
            constraint=models.CheckConstraint(condition=models.Q(('amount__gte', 0)), name='distribution_record_amount_non_negative'),
        ),
        migrations.CreateModel(
            name='DistributionSubmission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_date', models.DateTimeField(auto_now_add=True)),
                ('updated_date', models.DateTimeField(auto_now=True)),
                ('attempt', models.PositiveIntegerField()),
                ('tx_hash', models.CharField(blank=True, db_index=True, max_length=66, null=True)),
                ('nonce', models.PositiveBigIntegerField(blank=True, null=True)),
                ('gas_price', models.DecimalField(blank=True, decimal_places=0, max_digits=78, null=True)),
                ('gas_limit', models.PositiveBigIntegerField(blank=True, null=True)),
                ('status', models.CharField(choices=[('SUBMITTED', 'Submitted'), ('UNKNOWN', 'Unknown outcome'), ('STUCK', 'Stuck'), ('CONFIRMED', 'Confirmed'), ('REVERTED', 'Reverted'), ('SUPERSEDED', 'Superseded'), ('REJECTED', 'Rejected'), ('DROPPED', 'Dropped')], default='SUBMITTED', max_length=16)),
                ('submitted_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('block_number', models.PositiveBigIntegerField(blank=True, null=True)),
                ('confirmations', models.PositiveIntegerField(default=0)),
                ('gas_used', models.PositiveBigIntegerField(blank=True, null=True)),
                ('error', models.TextField(blank=True, default='')),
                ('record', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submissions', to='prize_pool.distributionrecord')),
            ],
            options={
                'ordering': ['record_id', 'attempt'],
                'indexes': [models.Index(fields=['status'], name='distribution_sub_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='AuditEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_date', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('action', models.CharField(choices=[('EMERGENCY_STOP', 'Emergency stop'), ('EMERGENCY_RESUME', 'Emergency resume'), ('MANUAL_DISTRIBUTION', 'Manual distribution'), ('CANCEL_DISTRIBUTION', 'Cancel distribution'), ('STATUS_OVERRIDE', 'Status override'), ('FORCE_RETRY', 'Force retry')], max_length=32)),
                ('admin_address', models.CharField(max_length=42)),
                ('reason', models.TextField(blank=True, default='')),
                ('success', models.BooleanField(default=True)),
                ('details', models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('hackathon', models.ForeignKey(blank=True, help_text='Null for system wide actions', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='audit_entries', to='hackathon.hackathon')),
            ],
            options={
                'verbose_name_plural': 'audit entries',
                'ordering': ['-created_date'],
                'indexes': [models.Index(fields=['action'], name='audit_entry_action_idx')],
            },
        ),
    ]
