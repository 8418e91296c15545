from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

uae_mobile_validator = RegexValidator(
    regex=r'^5\d{8}$',
    message='Please enter a valid UAE mobile number (9 digits starting with 5)',
)


class Customer(models.Model):
    """A delivery customer. Subscriptions, payments and tracking hang off this."""

    COUNTRY_CODE_CHOICES = [
        ('+971', 'UAE (+971)'),
    ]

    EMIRATE_CHOICES = [
        ('Abu Dhabi', 'Abu Dhabi'),
        ('Dubai', 'Dubai'),
        ('Sharjah', 'Sharjah'),
        ('Ajman', 'Ajman'),
        ('Ras Al Khaimah', 'Ras Al Khaimah'),
        ('Fujairah', 'Fujairah'),
        ('Umm Al Quwain', 'Umm Al Quwain'),
    ]

    name = models.CharField(max_length=100)
    country_code = models.CharField(max_length=5, choices=COUNTRY_CODE_CHOICES, default='+971')
    phone = models.CharField(max_length=9, validators=[uae_mobile_validator])
    full_phone_number = models.CharField(max_length=15, unique=True, editable=False)
    email = models.EmailField(null=True, blank=True, unique=True)
    emirate = models.CharField(max_length=20, choices=EMIRATE_CHOICES, default='Dubai')

    # Delivery address
    area = models.CharField(max_length=100, blank=True)
    building_name = models.CharField(max_length=100, blank=True)
    flat_number = models.CharField(max_length=20, blank=True)
    street = models.CharField(max_length=100, blank=True)
    landmark = models.CharField(max_length=100, blank=True)
    city = models.CharField(max_length=50, blank=True)
    latitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True,
        validators=[MinValueValidator(-90), MaxValueValidator(90)],
    )
    longitude = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True,
        validators=[MinValueValidator(-180), MaxValueValidator(180)],
    )

    join_date = models.DateField(default=timezone.localdate)
    is_active = models.BooleanField(default=True)
    notes = models.TextField(blank=True, max_length=500)

    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'customer'
        verbose_name_plural = 'customers'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['building_name', 'flat_number'], name='customer_building_flat_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.full_phone_number})"

    def save(self, *args, **kwargs):
        self.full_phone_number = self.build_full_phone_number(self.country_code, self.phone)
        if self.email:
            self.email = self.email.strip().lower()
        else:
            self.email = None
        super().save(*args, **kwargs)

    @staticmethod
    def build_full_phone_number(country_code, phone):
        return f"{country_code or '+971'}{phone}"

    def get_full_address(self):
        """Single-line delivery address."""
        flat = f"Flat {self.flat_number}" if self.flat_number else ''
        parts = [flat, self.building_name, self.street, self.area, self.city or self.emirate]
        return ', '.join(part for part in parts if part)

    def has_outstanding_payments(self):
        return self.payments.filter(payment_status__in=['pending', 'partial', 'overdue']).exists()
