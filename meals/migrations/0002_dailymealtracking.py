# Generated manually

import django.core.validators
import django.db.models.deletion
import meals.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('meals', '0001_initial'),
        ('customers', '0001_initial'),
        ('billing', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DailyMealTracking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('meals', models.JSONField(default=meals.models.default_tracked_meals)),
                ('special_requests', models.TextField(blank=True, max_length=500)),
                ('feedback_rating', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('feedback_comment', models.TextField(blank=True, max_length=500)),
                ('attendance', models.CharField(choices=[('present', 'Present'), ('absent', 'Absent'), ('partial', 'Partial')], default='absent', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='meal_tracking', to='customers.customer')),
                ('subscription', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='meal_tracking', to='billing.subscription')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'daily meal tracking',
                'verbose_name_plural': 'daily meal tracking',
                'ordering': ['-date'],
                'constraints': [models.UniqueConstraint(fields=('customer', 'date'), name='unique_tracking_per_customer_day')],
            },
        ),
    ]
