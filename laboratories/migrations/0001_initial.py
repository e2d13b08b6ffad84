from django.db import migrations, models
import django.db.models.deletion
import django.db.models.functions.text
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Laboratory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('laboratory_id', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('name', models.CharField(max_length=100)),
                ('description', models.TextField(blank=True)),
                ('capacity', models.PositiveIntegerField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'laboratory_precinct',
                'ordering': ['name'],
                'verbose_name_plural': 'laboratories',
            },
        ),
        migrations.AddConstraint(
            model_name='laboratory',
            constraint=models.UniqueConstraint(django.db.models.functions.text.Lower('name'), name='laboratory_name_ci_unique'),
        ),
        migrations.CreateModel(
            name='IPAssignmentRule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rule_id', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('ip_type', models.CharField(choices=[('single', 'Single IP'), ('range', 'IP Range'), ('subnet', 'Subnet (CIDR)')], default='single', max_length=10)),
                ('ip_address', models.CharField(blank=True, max_length=15)),
                ('ip_range_start', models.CharField(blank=True, max_length=15)),
                ('ip_range_end', models.CharField(blank=True, max_length=15)),
                ('subnet_mask', models.CharField(blank=True, max_length=18)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('laboratory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ip_rules', to='laboratories.laboratory')),
            ],
            options={
                'verbose_name': 'IP assignment rule',
                'db_table': 'laboratory_ip_address',
                'ordering': ['id'],
            },
        ),
    ]
