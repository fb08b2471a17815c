import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('farms', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ProductionRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('date', models.DateField(db_index=True, help_text='Date of this production record')),
                ('sellable_eggs', models.PositiveIntegerField(default=0, help_text='Clean, sellable eggs')),
                ('broken_eggs', models.PositiveIntegerField(default=0, help_text='Eggs broken during collection')),
                ('damaged_eggs', models.PositiveIntegerField(default=0, help_text='Cracked, leaking or otherwise unsellable eggs')),
                ('total_eggs', models.PositiveIntegerField(default=0, editable=False, help_text='Sum of all egg categories')),
                ('opening_male', models.PositiveIntegerField(default=0)),
                ('opening_female', models.PositiveIntegerField(default=0)),
                ('closing_male', models.PositiveIntegerField(default=0)),
                ('closing_female', models.PositiveIntegerField(default=0)),
                ('notes', models.TextField(blank=True)),
                ('recorded_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='production_records', to=settings.AUTH_USER_MODEL)),
                ('shed', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='production_records', to='farms.shed')),
            ],
            options={
                'db_table': 'production_records',
                'ordering': ['-date'],
                'indexes': [models.Index(fields=['shed', 'date'], name='production__shed_id_5b7e90_idx')],
                'unique_together': {('shed', 'date')},
            },
        ),
        migrations.CreateModel(
            name='MortalityRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('date', models.DateField(db_index=True)),
                ('male_mortality', models.PositiveIntegerField(default=0)),
                ('female_mortality', models.PositiveIntegerField(default=0)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('farm', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='mortality_records', to='farms.farm')),
                ('production_record', models.ForeignKey(blank=True, help_text='Production record of the same shed and date', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='mortality_records', to='flock_management.productionrecord')),
                ('shed', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='mortality_records', to='farms.shed')),
            ],
            options={
                'db_table': 'mortality_records',
                'ordering': ['-date'],
                'indexes': [
                    models.Index(fields=['farm', 'date'], name='mortality_r_farm_id_1e4f22_idx'),
                    models.Index(fields=['shed', 'date'], name='mortality_r_shed_id_9a0c37_idx'),
                ],
            },
        ),
    ]
