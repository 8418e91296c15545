import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from billing.api.serializers import PaymentSerializer, SubscriptionSerializer
from billing.exceptions import BillingError
from config.pagination import paginated_response
from customers.models import Customer
from customers.services import delete_customer, ensure_unique_contact, filter_options
from .serializers import CustomerSerializer

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def customer_list(request):
    """List customers (search + filters, paginated) or create one."""
    if request.method == 'POST':
        serializer = CustomerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            ensure_unique_contact(data.get('country_code', '+971'), data['phone'], data.get('email'))
        except BillingError as e:
            return Response({'error': e.message}, status=status.HTTP_400_BAD_REQUEST)

        customer = serializer.save(updated_by=request.user)
        logger.info(f"Customer {customer.pk} created by {request.user}")
        return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)

    customers = Customer.objects.all()
    params = request.query_params
    search = params.get('search', '').strip()
    if search:
        customers = customers.filter(
            Q(name__icontains=search)
            | Q(phone__icontains=search)
            | Q(full_phone_number__icontains=search)
            | Q(email__icontains=search)
        )
    if params.get('building'):
        customers = customers.filter(building_name__icontains=params['building'])
    if params.get('flat'):
        customers = customers.filter(flat_number__icontains=params['flat'])
    if params.get('emirate'):
        customers = customers.filter(emirate=params['emirate'])
    if params.get('is_active') in ('true', 'false'):
        customers = customers.filter(is_active=params['is_active'] == 'true')

    return paginated_response(request, customers.order_by('-created_at'), CustomerSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def customer_detail(request, pk):
    customer = get_object_or_404(Customer, pk=pk)

    if request.method == 'GET':
        data = CustomerSerializer(customer).data
        data['recent_payments'] = PaymentSerializer(customer.payments.all()[:12], many=True).data
        data['subscriptions'] = SubscriptionSerializer(
            customer.subscriptions.select_related('meal_plan').order_by('-start_date')[:12], many=True,
        ).data
        return Response(data)

    if request.method == 'DELETE':
        try:
            delete_customer(customer)
        except BillingError as e:
            return Response({'error': e.message}, status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH')
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    try:
        ensure_unique_contact(
            data.get('country_code', customer.country_code),
            data.get('phone', customer.phone),
            data.get('email', customer.email),
            exclude=customer,
        )
    except BillingError as e:
        return Response({'error': e.message}, status=status.HTTP_400_BAD_REQUEST)

    customer = serializer.save(updated_by=request.user)
    return Response(CustomerSerializer(customer).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_filter_options(request):
    return Response(filter_options())
