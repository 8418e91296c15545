# Generated manually
# Initial migration for meals app: meal plans

import django.core.validators
import meals.models
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='MealPlan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('plan_name', models.CharField(max_length=100, unique=True)),
                ('plan_code', models.CharField(max_length=20, unique=True)),
                ('description', models.TextField(blank=True, max_length=500)),
                ('meals', models.JSONField(default=meals.models.default_plan_meals)),
                ('base_price', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('currency', models.CharField(choices=[('AED', 'UAE Dirham'), ('USD', 'US Dollar'), ('INR', 'Indian Rupee')], default=meals.models.default_currency, max_length=3)),
                ('is_active', models.BooleanField(default=True)),
                ('created_by', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'meal plan',
                'verbose_name_plural': 'meal plans',
                'ordering': ['plan_name'],
            },
        ),
    ]
