from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('authentication', '0001_initial'),
        ('elections', '0001_initial'),
        ('laboratories', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='StudentAssignment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('assigned_at', models.DateTimeField(auto_now=True)),
                ('assigned_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('election', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='laboratory_assignments', to='elections.election')),
                ('laboratory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='student_assignments', to='laboratories.laboratory')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='laboratory_assignments', to='authentication.student')),
            ],
            options={
                'db_table': 'student_laboratory_assignment',
                'ordering': ['-assigned_at'],
                'unique_together': {('student', 'election')},
            },
        ),
    ]
