# Generated for registrations and identifier counters

from django.db import migrations, models
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='IdentifierCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('category_key', models.CharField(help_text='e.g. regionalCode, identificationNumber', max_length=50)),
                ('scope', models.CharField(help_text='Country the counter is partitioned by', max_length=100)),
                ('current_value', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Identifier Counter',
                'verbose_name_plural': 'Identifier Counters',
                'ordering': ['category_key', 'scope'],
                'constraints': [models.UniqueConstraint(fields=('category_key', 'scope'), name='identifier_counter_key_scope_unique')],
            },
        ),
        migrations.CreateModel(
            name='Registration',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('full_name', models.CharField(max_length=100)),
                ('date_of_birth', models.DateField()),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('phone', models.CharField(db_index=True, max_length=30)),
                ('country', models.CharField(db_index=True, max_length=100)),
                ('address', models.TextField()),
                ('marital_status', models.CharField(choices=[('Single', 'Single'), ('Married', 'Married'), ('Divorced', 'Divorced'), ('Widowed', 'Widowed')], max_length=10)),
                ('gender', models.CharField(choices=[('Male', 'Male'), ('Female', 'Female')], max_length=10)),
                ('education_level', models.CharField(max_length=200)),
                ('church_organization', models.CharField(max_length=200)),
                ('position', models.CharField(max_length=200)),
                ('recommendation_name', models.CharField(max_length=200)),
                ('recommendation_contact', models.CharField(blank=True, default='', max_length=200)),
                ('recommendation_relationship', models.CharField(blank=True, default='', max_length=200)),
                ('recommendation_church', models.CharField(blank=True, default='', max_length=200)),
                ('membership_purpose', models.TextField()),
                ('signed_by', models.CharField(blank=True, max_length=200, null=True)),
                ('approved_by', models.CharField(blank=True, max_length=200, null=True)),
                ('attested_by', models.CharField(blank=True, max_length=200, null=True)),
                ('regional_code', models.CharField(blank=True, editable=False, help_text='Issued code e.g. ML001 (country prefix + 3-digit sequence)', max_length=20, null=True, unique=True)),
                ('identification_number', models.CharField(blank=True, editable=False, help_text='Issued number e.g. LIB001 (country code + 3-digit sequence)', max_length=20, null=True, unique=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('declined', 'Declined'), ('under_review', 'Under Review')], db_index=True, default='pending', max_length=20)),
                ('status_message', models.TextField(blank=True, null=True)),
                ('status_updated_at', models.DateTimeField(blank=True, null=True)),
                ('reviewed_by', models.CharField(blank=True, max_length=150, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Registration',
                'verbose_name_plural': 'Registrations',
                'ordering': ['-created_at'],
            },
        ),
    ]
