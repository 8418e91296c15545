import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from billing.exceptions import BillingError
from billing.models import Payment, Subscription
from billing.services import reconciliation, reports
from billing.services.proration import calculate_full_month_amount, calculate_prorated_amount, needs_proration
from config.pagination import paginated_response
from customers.models import Customer
from meals.models import MealPlan
from .serializers import (
    AutoExtendSerializer, PaymentCreateSerializer, PaymentSerializer, PaymentUpdateSerializer,
    PricingPreviewSerializer, RecordPaymentSerializer, SubscriptionCreateSerializer,
    SubscriptionSerializer, SubscriptionUpdateSerializer,
)

logger = logging.getLogger(__name__)


def _rule_violation(error):
    return Response({'error': error.message}, status=status.HTTP_400_BAD_REQUEST)


def _int_param(request, name):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    return int(value)


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def subscription_list(request):
    """List subscriptions or create one (which also bills it)."""
    if request.method == 'POST':
        serializer = SubscriptionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer = get_object_or_404(Customer, pk=data['customer_id'])
        meal_plan = get_object_or_404(MealPlan, pk=data['meal_plan_id'])
        try:
            creation = reconciliation.create_subscription(
                customer=customer,
                meal_plan=meal_plan,
                start_date=data['start_date'],
                end_date=data['end_date'],
                discount=data.get('discount'),
                base_price=data.get('base_price_per_month'),
                month=data.get('month'),
                year=data.get('year'),
                custom_meals=data.get('custom_meals'),
                notes=data['notes'],
                status=data['status'],
                created_by=request.user.get_full_name(),
                recorded_by=request.user,
            )
        except BillingError as e:
            return _rule_violation(e)

        return Response({
            'message': 'Subscription created successfully',
            'subscription': SubscriptionSerializer(creation.subscription).data,
            'payment': PaymentSerializer(creation.payment).data if creation.payment else None,
            'payment_error': creation.payment_error,
        }, status=status.HTTP_201_CREATED)

    subscriptions = Subscription.objects.select_related('customer', 'meal_plan')
    params = request.query_params
    try:
        month, year = _int_param(request, 'month'), _int_param(request, 'year')
        customer_id = _int_param(request, 'customer_id')
    except ValueError:
        return Response({'error': 'Month, year and customer_id must be numbers'}, status=status.HTTP_400_BAD_REQUEST)
    if month:
        subscriptions = subscriptions.filter(month=month)
    if year:
        subscriptions = subscriptions.filter(year=year)
    if params.get('status'):
        subscriptions = subscriptions.filter(status=params['status'])
    if customer_id:
        subscriptions = subscriptions.filter(customer_id=customer_id)
    if params.get('building'):
        subscriptions = subscriptions.filter(customer__building_name__icontains=params['building'])
    if params.get('flat'):
        subscriptions = subscriptions.filter(customer__flat_number__icontains=params['flat'])

    return paginated_response(request, subscriptions.order_by('-start_date', '-created_at'), SubscriptionSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_subscriptions(request, customer_id):
    customer = get_object_or_404(Customer, pk=customer_id)
    subscriptions = customer.subscriptions.select_related('meal_plan').order_by('-start_date')
    return Response(SubscriptionSerializer(subscriptions, many=True).data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def subscription_detail(request, pk):
    subscription = get_object_or_404(Subscription.objects.select_related('customer', 'meal_plan'), pk=pk)

    if request.method == 'GET':
        return Response(SubscriptionSerializer(subscription).data)

    if request.method == 'DELETE':
        try:
            reconciliation.delete_subscription(subscription)
        except BillingError as e:
            return _rule_violation(e)
        return Response({'message': 'Subscription deleted successfully'})

    serializer = SubscriptionUpdateSerializer(data=request.data, partial=request.method == 'PATCH')
    serializer.is_valid(raise_exception=True)
    changes = dict(serializer.validated_data)
    if 'meal_plan_id' in changes:
        changes['meal_plan'] = get_object_or_404(MealPlan, pk=changes.pop('meal_plan_id'))

    try:
        subscription = reconciliation.update_subscription(subscription, changes, updated_by=request.user.get_full_name())
    except BillingError as e:
        return _rule_violation(e)

    return Response({
        'message': 'Subscription updated successfully',
        'subscription': SubscriptionSerializer(subscription).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def subscription_cancel(request, pk):
    subscription = get_object_or_404(Subscription, pk=pk)
    reconciliation.cancel_subscription(subscription, updated_by=request.user.get_full_name())
    return Response({'message': 'Subscription cancelled successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def subscription_check_payments(request, pk):
    subscription = get_object_or_404(Subscription, pk=pk)
    result = reconciliation.check_payments(subscription)
    response = Response({'subscription_id': subscription.pk, **result})
    response['Cache-Control'] = 'no-cache, no-store, must-revalidate'
    return response


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def subscription_calculate_pricing(request):
    """Price a plan for a date range (prorated) or for a whole month when no range is given."""
    serializer = PricingPreviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    meal_plan = get_object_or_404(MealPlan, pk=data['meal_plan_id'])
    base_price = data.get('base_price_per_month')
    if base_price is None:
        base_price = meal_plan.base_price

    if data.get('start_date'):
        result = calculate_prorated_amount(base_price, data['start_date'], data['end_date'], data.get('discount'))
        pricing = {
            **result.as_dict(),
            'percentage': result.percentage,
            'needs_proration': needs_proration(data['start_date'], data['end_date']),
        }
    else:
        pricing = calculate_full_month_amount(base_price, data.get('discount'))

    return Response({
        'meal_plan': {'id': meal_plan.pk, 'plan_name': meal_plan.plan_name, 'currency': meal_plan.currency},
        'pricing': pricing,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def subscription_stats(request):
    return Response(reports.subscription_stats())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def subscription_weekly_report(request):
    report = reports.weekly_subscription_report()
    report['newly_activated'] = SubscriptionSerializer(report['newly_activated'], many=True).data
    report['expiring'] = SubscriptionSerializer(report['expiring'], many=True).data
    return Response(report)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def subscription_auto_extend_eligible(request):
    try:
        month, year = _int_param(request, 'target_month'), _int_param(request, 'target_year')
    except ValueError:
        return Response({'error': 'Target month and year must be numbers'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(reconciliation.list_extension_candidates(month, year))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def subscription_auto_extend(request):
    serializer = AutoExtendSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    run = reconciliation.auto_extend(
        target_month=data.get('target_month'),
        target_year=data.get('target_year'),
        created_by=data.get('created_by'),
    )
    results = run['results']
    return Response({
        'message': results.summary('Auto-extension'),
        'target_period': run['target_period'],
        'source_period': run['source_period'],
        'results': results.as_dict(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def subscription_generate_payments(request):
    results = reconciliation.generate_missing_payments(recorded_by=request.user)
    return Response({
        'message': results.summary('Payment generation'),
        'results': results.as_dict(),
    })


# =============================================================================
# PAYMENTS
# =============================================================================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def payment_list(request):
    if request.method == 'POST':
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        customer = get_object_or_404(Customer, pk=data.pop('customer_id'))
        if Payment.objects.filter(customer=customer, month=data['month'], year=data['year']).exists():
            return Response(
                {'error': 'Payment record already exists for this month and year'},
                status=status.HTTP_400_BAD_REQUEST,
            )
        if not data.get('plan_details'):
            data['plan_details'] = {'plan_name': 'Standard Plan', 'monthly_amount': str(data['amount_due'])}

        payment = Payment.objects.create(customer=customer, recorded_by=request.user, **data)
        logger.info(f"Manual payment {payment.pk} created for customer {customer.pk}")
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)

    payments = Payment.objects.select_related('customer').prefetch_related('installments')
    params = request.query_params
    try:
        month, year = _int_param(request, 'month'), _int_param(request, 'year')
        customer_id = _int_param(request, 'customer_id')
    except ValueError:
        return Response({'error': 'Month, year and customer_id must be numbers'}, status=status.HTTP_400_BAD_REQUEST)
    if params.get('status'):
        payments = payments.filter(payment_status=params['status'])
    if month:
        payments = payments.filter(month=month)
    if year:
        payments = payments.filter(year=year)
    if customer_id:
        payments = payments.filter(customer_id=customer_id)

    return paginated_response(request, payments.order_by('-year', '-month', '-created_at'), PaymentSerializer)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def payment_detail(request, pk):
    payment = get_object_or_404(Payment.objects.select_related('customer'), pk=pk)

    if request.method == 'GET':
        return Response(PaymentSerializer(payment).data)

    if request.method == 'DELETE':
        payment.delete()
        logger.info(f"Payment {pk} deleted by {request.user}")
        return Response({'message': 'Payment deleted successfully'})

    serializer = PaymentUpdateSerializer(payment, data=request.data, partial=request.method == 'PATCH')
    serializer.is_valid(raise_exception=True)
    payment = serializer.save()
    return Response(PaymentSerializer(payment).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def payment_record(request, pk):
    """Record an installment against a payment."""
    payment = get_object_or_404(Payment, pk=pk)
    serializer = RecordPaymentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payment.record_installment(
        amount=data['amount'],
        payment_method=data['payment_method'],
        transaction_id=data['transaction_id'],
        notes=data['notes'],
        recorded_by=request.user,
    )
    logger.info(f"Recorded {data['amount']} against payment {payment.pk}; status now {payment.payment_status}")
    return Response({'message': 'Payment recorded successfully', 'payment': PaymentSerializer(payment).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_stats(request):
    try:
        month, year = _int_param(request, 'month'), _int_param(request, 'year')
    except ValueError:
        return Response({'error': 'Month and year must be numbers'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(reports.payment_stats(month=month, year=year))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_monthly_report(request):
    try:
        month, year = _int_param(request, 'month'), _int_param(request, 'year')
    except ValueError:
        month = year = None
    if not month or not year:
        return Response({'error': 'Month and year are required'}, status=status.HTTP_400_BAD_REQUEST)

    report = reports.monthly_report(month, year)
    report['payments'] = PaymentSerializer(report['payments'], many=True).data
    return Response(report)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def payment_yearly_report(request):
    try:
        year = _int_param(request, 'year')
    except ValueError:
        year = None
    if not year:
        return Response({'error': 'Year is required'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(reports.yearly_report(year))
