import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Opus',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255, verbose_name='name')),
                ('description', models.TextField(blank=True, verbose_name='description')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='opuses', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'Opus',
                'verbose_name_plural': 'Opuses',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Item',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255, verbose_name='title')),
                ('raw_instructions', models.TextField(blank=True, verbose_name='raw instructions')),
                ('routing_notes', models.TextField(blank=True, null=True, verbose_name='routing notes')),
                ('notes', models.TextField(blank=True, null=True, verbose_name='notes')),
                ('status', models.CharField(choices=[('INBOX', 'Inbox'), ('BACKLOG', 'Backlog'), ('TODO', 'To Do'), ('DOING', 'Doing'), ('BLOCKED', 'Blocked'), ('IN_REVIEW', 'In Review'), ('DONE', 'Done'), ('COLD_STORAGE', 'Cold Storage'), ('ARCHIVE', 'Archive')], default='INBOX', max_length=20, verbose_name='status')),
                ('swimlane', models.CharField(blank=True, choices=[('EXPEDITE', 'Expedite'), ('PROJECT', 'Project'), ('HABIT', 'Habit'), ('HOME', 'Home')], max_length=20, null=True, verbose_name='swimlane')),
                ('priority', models.CharField(blank=True, choices=[('HIGH', 'High'), ('MEDIUM', 'Medium'), ('LOW', 'Low')], max_length=10, null=True, verbose_name='priority')),
                ('labels', models.JSONField(blank=True, default=list, verbose_name='labels')),
                ('cycle_count', models.PositiveIntegerField(default=0, help_text='Times the item went back to work after review or completion.', verbose_name='cycle count')),
                ('total_time_in_create', models.FloatField(blank=True, help_text='Minutes spent in the DOING status.', null=True, verbose_name='total time in create')),
                ('started_at', models.DateTimeField(blank=True, null=True, verbose_name='started at')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='completed at')),
                ('blocked_at', models.DateTimeField(blank=True, null=True, verbose_name='blocked at')),
                ('status_changed_at', models.DateTimeField(blank=True, null=True, verbose_name='status changed at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('opus', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='items', to='items.opus', verbose_name='opus')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'Item',
                'verbose_name_plural': 'Items',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', 'status', 'completed_at'], name='item_user_status_done_idx')],
            },
        ),
        migrations.CreateModel(
            name='StatusChange',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_status', models.CharField(choices=[('INBOX', 'Inbox'), ('BACKLOG', 'Backlog'), ('TODO', 'To Do'), ('DOING', 'Doing'), ('BLOCKED', 'Blocked'), ('IN_REVIEW', 'In Review'), ('DONE', 'Done'), ('COLD_STORAGE', 'Cold Storage'), ('ARCHIVE', 'Archive')], max_length=20)),
                ('to_status', models.CharField(choices=[('INBOX', 'Inbox'), ('BACKLOG', 'Backlog'), ('TODO', 'To Do'), ('DOING', 'Doing'), ('BLOCKED', 'Blocked'), ('IN_REVIEW', 'In Review'), ('DONE', 'Done'), ('COLD_STORAGE', 'Cold Storage'), ('ARCHIVE', 'Archive')], max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_changes', to='items.item')),
            ],
            options={
                'ordering': ['created_at'],
            },
        ),
    ]
