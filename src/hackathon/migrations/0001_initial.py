import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Hackathon',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_date', models.DateTimeField(auto_now_add=True)),
                ('updated_date', models.DateTimeField(auto_now=True)),
                ('title', models.CharField(max_length=255)),
                ('organizer_address', models.CharField(blank=True, default='', max_length=42)),
                ('contract_id', models.DecimalField(decimal_places=0, help_text='Hackathon id in the on-chain registry', max_digits=78, unique=True)),
                ('status', models.CharField(choices=[('DRAFT', 'Draft'), ('REGISTRATION_OPEN', 'Registration open'), ('REGISTRATION_CLOSED', 'Registration closed'), ('SUBMISSION_OPEN', 'Submission open'), ('SUBMISSION_CLOSED', 'Submission closed'), ('VOTING_OPEN', 'Voting open'), ('VOTING_CLOSED', 'Voting closed'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], default='DRAFT', max_length=32)),
                ('prize_amount', models.DecimalField(decimal_places=0, default=0, help_text="Prize pool in the token's smallest unit", max_digits=78)),
                ('is_deposited', models.BooleanField(default=False)),
                ('is_distributed', models.BooleanField(default=False)),
                ('distribution_tx_hash', models.CharField(blank=True, default='', max_length=66)),
                ('refund_required', models.BooleanField(default=False, help_text='Set when an admin cancelled the payout and asked for a refund')),
                ('winners_finalized_date', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'indexes': [models.Index(fields=['status'], name='hackathon_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='HackathonWinner',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_date', models.DateTimeField(auto_now_add=True)),
                ('updated_date', models.DateTimeField(auto_now=True)),
                ('rank', models.PositiveIntegerField()),
                ('wallet_address', models.CharField(max_length=42)),
                ('prize_amount', models.DecimalField(decimal_places=0, max_digits=78)),
                ('hackathon', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='winners', to='hackathon.hackathon')),
            ],
            options={
                'ordering': ['rank'],
            },
        ),
        migrations.AddConstraint(
            model_name='hackathonwinner',
            constraint=models.UniqueConstraint(fields=('hackathon', 'rank'), name='unique_hackathon_winner_rank'),
        ),
    ]
