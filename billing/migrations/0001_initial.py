# Generated manually
# Initial migration for billing app

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


MONTH_VALIDATORS = [django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(12)]
YEAR_VALIDATORS = [django.core.validators.MinValueValidator(2020), django.core.validators.MaxValueValidator(2100)]
METHOD_CHOICES = [('cash', 'Cash'), ('upi', 'UPI'), ('bank_transfer', 'Bank Transfer'), ('card', 'Card'), ('cheque', 'Cheque')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('customers', '0001_initial'),
        ('meals', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Subscription',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('month', models.PositiveSmallIntegerField(validators=MONTH_VALIDATORS)),
                ('year', models.PositiveSmallIntegerField(validators=YEAR_VALIDATORS)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('base_price_per_month', models.DecimalField(decimal_places=2, max_digits=10)),
                ('discount_type', models.CharField(choices=[('percentage', 'Percentage'), ('fixed', 'Fixed Amount')], default='percentage', max_length=20)),
                ('discount_value', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('discount_reason', models.CharField(blank=True, max_length=200)),
                ('subscription_days', models.PositiveSmallIntegerField(default=0)),
                ('month_days', models.PositiveSmallIntegerField(default=30)),
                ('prorated_ratio', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=7)),
                ('prorated_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('discount_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('final_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('custom_meals', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('active', 'Active'), ('paused', 'Paused'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], default='active', max_length=20)),
                ('notes', models.TextField(blank=True, max_length=500)),
                ('created_by', models.CharField(blank=True, max_length=100)),
                ('updated_by', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='subscriptions', to='customers.customer')),
                ('meal_plan', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='subscriptions', to='meals.mealplan')),
            ],
            options={
                'verbose_name': 'subscription',
                'verbose_name_plural': 'subscriptions',
                'ordering': ['-year', '-month', '-created_at'],
                'indexes': [
                    models.Index(fields=['customer', 'start_date', 'end_date'], name='subscription_customer_span_idx'),
                    models.Index(fields=['month', 'year', 'status'], name='subscription_period_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('month', models.PositiveSmallIntegerField(validators=MONTH_VALIDATORS)),
                ('year', models.PositiveSmallIntegerField(validators=YEAR_VALIDATORS)),
                ('period_start', models.DateField(blank=True, null=True)),
                ('period_end', models.DateField(blank=True, null=True)),
                ('plan_details', models.JSONField(blank=True, default=dict)),
                ('amount_due', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('amount_paid', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('partial', 'Partial'), ('paid', 'Paid'), ('overdue', 'Overdue')], default='pending', max_length=10)),
                ('payment_method', models.CharField(choices=METHOD_CHOICES, default='cash', max_length=20)),
                ('payment_date', models.DateField(blank=True, null=True)),
                ('due_date', models.DateField()),
                ('transaction_id', models.CharField(blank=True, max_length=100)),
                ('receipt_number', models.CharField(blank=True, max_length=100)),
                ('notes', models.TextField(blank=True, max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='customers.customer')),
                ('subscription', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.RESTRICT, related_name='payments', to='billing.subscription')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'payment',
                'verbose_name_plural': 'payments',
                'ordering': ['-year', '-month', '-created_at'],
                'indexes': [
                    models.Index(fields=['customer', 'year', 'month'], name='payment_customer_period_idx'),
                    models.Index(fields=['payment_status'], name='payment_status_idx'),
                    models.Index(fields=['due_date'], name='payment_due_date_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PaymentInstallment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('payment_method', models.CharField(choices=METHOD_CHOICES, max_length=20)),
                ('transaction_id', models.CharField(blank=True, max_length=100)),
                ('paid_date', models.DateField(default=django.utils.timezone.localdate)),
                ('notes', models.CharField(blank=True, max_length=200)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('payment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='installments', to='billing.payment')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'payment installment',
                'verbose_name_plural': 'payment installments',
                'ordering': ['-paid_date', '-created_at'],
            },
        ),
    ]
