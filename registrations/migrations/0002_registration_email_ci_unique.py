# Case-insensitive uniqueness for applicant emails

from django.db import migrations, models
import django.db.models.functions.text


class Migration(migrations.Migration):

    dependencies = [
        ('registrations', '0001_initial'),
    ]

    operations = [
        migrations.AddConstraint(
            model_name='registration',
            constraint=models.UniqueConstraint(
                django.db.models.functions.text.Lower('email'),
                name='registration_email_ci_unique',
            ),
        ),
    ]
