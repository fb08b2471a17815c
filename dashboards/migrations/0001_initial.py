import datetime
import django.core.validators
import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
        ('farms', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ReportDefinition',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('frequency', models.CharField(choices=[('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly')], max_length=10)),
                ('report_type', models.CharField(choices=[('comprehensive', 'Comprehensive Report'), ('production', 'Production Report'), ('attendance', 'Attendance Report'), ('daily', 'Daily Summary'), ('weekly', 'Weekly Summary'), ('monthly', 'Monthly Summary')], default='comprehensive', max_length=20)),
                ('recipients', models.JSONField(default=list, help_text='Email addresses')),
                ('send_time', models.TimeField(default=datetime.time(8, 0), help_text='Local time of day the report is sent')),
                ('weekday', models.PositiveSmallIntegerField(choices=[(0, 'Monday'), (1, 'Tuesday'), (2, 'Wednesday'), (3, 'Thursday'), (4, 'Friday'), (5, 'Saturday'), (6, 'Sunday')], default=0, help_text='Day of week for weekly reports')),
                ('day_of_month', models.PositiveSmallIntegerField(default=1, help_text='Day of month for monthly reports', validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(28)])),
                ('is_active', models.BooleanField(default=True)),
                ('status', models.CharField(choices=[('idle', 'Idle'), ('due', 'Due'), ('processing', 'Processing'), ('delivered', 'Delivered'), ('failed', 'Failed')], default='idle', max_length=12)),
                ('last_occurrence', models.DateTimeField(blank=True, help_text='Most recent occurrence delivered successfully', null=True)),
                ('claimed_occurrence', models.DateTimeField(blank=True, null=True)),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=0)),
                ('last_delivered_at', models.DateTimeField(blank=True, null=True)),
                ('last_error', models.TextField(blank=True)),
                ('failure_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_report_definitions', to=settings.AUTH_USER_MODEL)),
                ('farm', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='report_definitions', to='farms.farm')),
                ('manager', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='managed_report_definitions', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='report_definitions', to='accounts.organization')),
                ('shed', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='report_definitions', to='farms.shed')),
            ],
            options={
                'db_table': 'report_definitions',
                'ordering': ['organization', 'name'],
                'indexes': [
                    models.Index(fields=['is_active', 'frequency'], name='report_defi_is_acti_4c1d8e_idx'),
                    models.Index(fields=['organization', 'is_active'], name='report_defi_organiz_b2e6a7_idx'),
                ],
            },
        ),
    ]
