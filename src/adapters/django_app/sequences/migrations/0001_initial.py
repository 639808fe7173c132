"""
Initial migration for the sequences table.
"""

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='SequenceModel',
            fields=[
                ('name', models.CharField(
                    max_length=50,
                    primary_key=True,
                    serialize=False,
                    help_text="Counter name, e.g. 'ticket' or 'receipt'"
                )),
                ('value', models.BigIntegerField(
                    default=0,
                    help_text='Last value handed out'
                )),
            ],
            options={
                'verbose_name': 'Sequence',
                'verbose_name_plural': 'Sequences',
                'db_table': 'sequences',
            },
        ),
    ]
