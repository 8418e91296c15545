import logging

from django.db.models import Q

from billing.exceptions import DuplicateRecordError, OutstandingPaymentsError
from .models import Customer

logger = logging.getLogger(__name__)


def ensure_unique_contact(country_code, phone, email=None, exclude=None):
    """Reject a phone number or email already used by another customer."""
    full_phone = Customer.build_full_phone_number(country_code, phone)
    lookup = Q(full_phone_number=full_phone)
    if email:
        lookup |= Q(email__iexact=email.strip())

    queryset = Customer.objects.filter(lookup)
    if exclude is not None:
        queryset = queryset.exclude(pk=exclude.pk)
    clash = queryset.first()
    if clash is None:
        return
    if clash.full_phone_number == full_phone:
        raise DuplicateRecordError('Customer with this phone number already exists')
    raise DuplicateRecordError('Customer with this email already exists')


def delete_customer(customer):
    if customer.has_outstanding_payments():
        raise OutstandingPaymentsError('Cannot delete customer with pending payments')
    pk = customer.pk
    customer.delete()
    logger.info(f"Customer {pk} deleted")


def filter_options():
    """Distinct building names and flat numbers, for list filters."""
    buildings = (
        Customer.objects.exclude(building_name='')
        .values_list('building_name', flat=True).distinct().order_by('building_name')
    )
    flats = (
        Customer.objects.exclude(flat_number='')
        .values_list('flat_number', flat=True).distinct().order_by('flat_number')
    )
    return {'buildings': list(buildings), 'flats': list(flats)}
