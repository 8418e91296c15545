import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from billing.services.proration import to_date
from customers.models import Customer
from meals.models import DailyMealTracking, MealPlan
from meals.services.meal_slots import STANDARD, delivery_time_options
from meals.services.tracking import attendance_stats, delivery_report, delivery_time_breakdown, mark_attendance
from .serializers import DailyMealTrackingSerializer, MarkAttendanceSerializer, MealPlanSerializer

logger = logging.getLogger(__name__)


def _parse_date_param(request, name='date'):
    """Date query parameter, today when absent. Raises ValueError on bad input."""
    value = request.query_params.get(name)
    if not value:
        return timezone.localdate()
    return to_date(value)


def _duplicate_plan_error(data, exclude=None):
    plans = MealPlan.objects.all()
    if exclude is not None:
        plans = plans.exclude(pk=exclude.pk)
    code = data.get('plan_code')
    if code and plans.filter(plan_code=code.strip().upper()).exists():
        return 'Meal plan with this code already exists'
    name = data.get('plan_name')
    if name and plans.filter(plan_name__iexact=name.strip()).exists():
        return 'Meal plan with this name already exists'
    return None


# =============================================================================
# MEAL PLANS
# =============================================================================

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def meal_plan_list(request):
    if request.method == 'POST':
        serializer = MealPlanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        error = _duplicate_plan_error(serializer.validated_data)
        if error:
            return Response({'error': error}, status=status.HTTP_400_BAD_REQUEST)
        plan = serializer.save(created_by=request.user.get_full_name())
        logger.info(f"Meal plan {plan.plan_code} created by {request.user}")
        return Response(MealPlanSerializer(plan).data, status=status.HTTP_201_CREATED)

    plans = MealPlan.objects.all()
    if request.query_params.get('include_inactive') != 'true':
        plans = plans.filter(is_active=True)
    search = request.query_params.get('search', '').strip()
    if search:
        plans = plans.filter(Q(plan_name__icontains=search) | Q(plan_code__icontains=search))
    return Response(MealPlanSerializer(plans, many=True).data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def meal_plan_detail(request, pk):
    plan = get_object_or_404(MealPlan, pk=pk)

    if request.method == 'GET':
        return Response(MealPlanSerializer(plan).data)

    if request.method == 'DELETE':
        # Plans are referenced by past subscriptions, so only deactivate
        plan.is_active = False
        plan.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Meal plan {plan.plan_code} deactivated by {request.user}")
        return Response({'message': 'Meal plan deactivated successfully'})

    serializer = MealPlanSerializer(plan, data=request.data, partial=request.method == 'PATCH')
    serializer.is_valid(raise_exception=True)
    error = _duplicate_plan_error(serializer.validated_data, exclude=plan)
    if error:
        return Response({'error': error}, status=status.HTTP_400_BAD_REQUEST)
    plan = serializer.save()
    return Response(MealPlanSerializer(plan).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def meal_delivery_time_options(request):
    try:
        options = delivery_time_options(request.query_params.get('meal_type'))
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(options)


# =============================================================================
# DAILY TRACKING
# =============================================================================

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tracking_list(request):
    """Tracking records for a date, or for a start_date/end_date range."""
    records = DailyMealTracking.objects.select_related('customer')
    params = request.query_params
    try:
        if params.get('start_date') and params.get('end_date'):
            records = records.filter(date__range=(to_date(params['start_date']), to_date(params['end_date'])))
        else:
            records = records.filter(date=_parse_date_param(request))
    except ValueError:
        return Response({'error': 'Invalid date format. Use YYYY-MM-DD'}, status=status.HTTP_400_BAD_REQUEST)
    if params.get('customer_id'):
        records = records.filter(customer_id=params['customer_id'])
    return Response(DailyMealTrackingSerializer(records.order_by('-date', 'customer__name'), many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def tracking_mark_attendance(request):
    serializer = MarkAttendanceSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    customer = get_object_or_404(Customer, pk=data['customer_id'])
    try:
        record = mark_attendance(customer, data['date'], data['meal_type'], data['attended'], recorded_by=request.user)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'message': f"{data['meal_type']} attendance marked successfully",
        'record': DailyMealTrackingSerializer(record).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tracking_delivery_breakdown(request):
    try:
        day = _parse_date_param(request)
    except ValueError:
        return Response({'error': 'Invalid date format. Use YYYY-MM-DD'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(delivery_time_breakdown(day))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tracking_delivery_report(request):
    params = request.query_params
    if not params.get('date'):
        return Response({'error': 'Date parameter is required (YYYY-MM-DD format)'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        day = to_date(params['date'])
        report = delivery_report(
            day,
            meal_type=params.get('meal_type', 'lunch'),
            delivery_time=params.get('delivery_time', STANDARD),
            customer_id=params.get('customer_id'),
        )
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(report)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def tracking_stats(request):
    try:
        day = _parse_date_param(request)
    except ValueError:
        return Response({'error': 'Invalid date format. Use YYYY-MM-DD'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(attendance_stats(day))
