import django.core.validators
import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('accounts', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Farm',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('manager', models.ForeignKey(blank=True, help_text='Manager responsible for this farm', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='managed_farms', to=settings.AUTH_USER_MODEL)),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='farms', to='accounts.organization')),
            ],
            options={
                'db_table': 'farms',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['organization', 'is_active'], name='farms_organiz_3f9b2d_idx')],
            },
        ),
        migrations.CreateModel(
            name='Shed',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('capacity', models.PositiveIntegerField(help_text='Maximum number of birds the shed can house', validators=[django.core.validators.MinValueValidator(1)])),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('farm', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sheds', to='farms.farm')),
            ],
            options={
                'db_table': 'sheds',
                'ordering': ['farm__name', 'name'],
                'unique_together': {('farm', 'name')},
            },
        ),
        migrations.CreateModel(
            name='ProductionCycle',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(blank=True, max_length=100)),
                ('start_date', models.DateField(help_text='Week 1, day 1 of the cycle')),
                ('start_week', models.PositiveIntegerField(default=1, help_text='Flock age in weeks on the start date', validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(100)])),
                ('expected_end_week', models.PositiveIntegerField(blank=True, help_text='Flock age in weeks when the cycle is expected to end', null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(200)])),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('farm', models.ForeignKey(blank=True, help_text='Leave empty for the organization-wide default cycle', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='production_cycles', to='farms.farm')),
                ('organization', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='production_cycles', to='accounts.organization')),
            ],
            options={
                'db_table': 'production_cycles',
                'ordering': ['-start_date'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('farm__isnull', False), ('is_active', True)), fields=('farm',), name='one_active_cycle_per_farm'),
                    models.UniqueConstraint(condition=models.Q(('farm__isnull', True), ('is_active', True)), fields=('organization',), name='one_active_default_cycle_per_org'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AttendanceRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('date', models.DateField(db_index=True)),
                ('status', models.CharField(choices=[('PRESENT', 'Present'), ('LATE', 'Late'), ('ABSENT', 'Absent')], max_length=10)),
                ('notes', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('farm', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='farms.farm')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'attendance_records',
                'ordering': ['-date'],
                'indexes': [models.Index(fields=['farm', 'date'], name='attendance__farm_id_8d2c41_idx')],
                'unique_together': {('user', 'date')},
            },
        ),
    ]
