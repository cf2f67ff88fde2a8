import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('items', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Decision',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('agent_type', models.CharField(choices=[('FILER', 'Filer'), ('LIBRARIAN', 'Librarian'), ('PRIORITIZER', 'Prioritizer'), ('STORER', 'Storer'), ('RETRIEVER', 'Retriever')], max_length=20, verbose_name='agent type')),
                ('state', models.JSONField(verbose_name='state')),
                ('action', models.JSONField(verbose_name='action')),
                ('next_state', models.JSONField(blank=True, null=True, verbose_name='next state')),
                ('alternative_actions', models.JSONField(blank=True, null=True, verbose_name='alternative actions')),
                ('model_version', models.CharField(help_text='Tag of the model that produced the action, e.g. gpt-4.1-mini-20250101.', max_length=120, verbose_name='model version')),
                ('confidence', models.FloatField(blank=True, null=True, verbose_name='confidence')),
                ('reasoning', models.TextField(blank=True, null=True, verbose_name='reasoning')),
                ('user_feedback', models.CharField(blank=True, choices=[('CONFIRMED', 'Confirmed'), ('CORRECTED', 'Corrected'), ('IGNORED', 'Ignored'), ('OVERRIDDEN', 'Overridden')], max_length=20, null=True, verbose_name='user feedback')),
                ('user_correction', models.JSONField(blank=True, null=True, verbose_name='user correction')),
                ('feedback_at', models.DateTimeField(blank=True, null=True, verbose_name='feedback at')),
                ('outcome_metrics', models.JSONField(blank=True, default=dict, verbose_name='outcome metrics')),
                ('outcome_observed_at', models.DateTimeField(blank=True, null=True, verbose_name='outcome observed at')),
                ('reward', models.FloatField(blank=True, null=True, verbose_name='reward')),
                ('reward_components', models.JSONField(blank=True, null=True, verbose_name='reward components')),
                ('reward_computed_at', models.DateTimeField(blank=True, null=True, verbose_name='reward computed at')),
                ('is_training_data', models.BooleanField(default=True, verbose_name='is training data')),
                ('is_validation_data', models.BooleanField(default=False, verbose_name='is validation data')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('item', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='decisions', to='items.item', verbose_name='item')),
                ('opus', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='decisions', to='items.opus', verbose_name='opus')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='decisions', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'Decision',
                'verbose_name_plural': 'Decisions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['agent_type', 'created_at'], name='decision_agent_created_idx'),
                    models.Index(fields=['user', 'created_at'], name='decision_user_created_idx'),
                    models.Index(fields=['reward'], name='decision_reward_idx'),
                ],
            },
        ),
    ]
