from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.shortcuts import get_object_or_404
import logging

from apps.authentication.permissions import IsManager
from apps.parties.models import Party
from . import services
from .serializers import ReportQuerySerializer

logger = logging.getLogger(__name__)


def _run_report(request, build):
    """Validate the report query parameters, then build the report from them"""
    serializer = ReportQuerySerializer.from_request(request)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    params = serializer.validated_data
    logger.info(f"Report {build.__name__} requested by {request.user.username}")
    return Response(build(params))


@api_view(['GET'])
@permission_classes([IsManager])
def installment_collection(request):
    def collections(params):
        return services.installment_collection_report(
            params.get('date_from'), params.get('date_to'), today=params.get('today')
        )
    return _run_report(request, collections)


@api_view(['GET'])
@permission_classes([IsManager])
def outstanding_balance(request):
    def outstanding(params):
        return services.outstanding_balance_report(today=params.get('today'))
    return _run_report(request, outstanding)


@api_view(['GET'])
@permission_classes([IsManager])
def profit_and_loss(request):
    def profit_loss(params):
        return services.profit_and_loss_report(params.get('date_from'), params.get('date_to'))
    return _run_report(request, profit_loss)


@api_view(['GET'])
@permission_classes([IsManager])
def customer_ledger(request, customer_id):
    """
    Running account of one customer
    """
    customer = get_object_or_404(Party, id=customer_id)
    return Response(services.customer_ledger(customer))


@api_view(['GET'])
@permission_classes([IsManager])
def defaulters(request):
    def defaulters_list(params):
        return services.defaulters_report(today=params.get('today'))
    return _run_report(request, defaulters_list)


@api_view(['GET'])
@permission_classes([IsManager])
def payment_history(request):
    """
    Settled installments, optionally for one customer (``?customer=<id>``)
    """
    def history(params):
        return services.payment_history_report(
            customer_id=params.get('customer'),
            date_from=params.get('date_from'),
            date_to=params.get('date_to'),
        )
    return _run_report(request, history)


@api_view(['GET'])
@permission_classes([IsManager])
def sales_summary(request):
    def sales(params):
        return services.installment_sales_summary(params.get('date_from'), params.get('date_to'))
    return _run_report(request, sales)


@api_view(['GET'])
@permission_classes([IsManager])
def default_rate(request):
    def rate(params):
        return services.default_rate_report(today=params.get('today'))
    return _run_report(request, rate)


@api_view(['GET'])
@permission_classes([IsManager])
def due_today(request):
    """
    Installments due today together with everything already overdue
    """
    def due(params):
        return services.due_today_report(today=params.get('today'))
    return _run_report(request, due)


@api_view(['GET'])
@permission_classes([IsManager])
def upcoming_due(request):
    """
    Installments falling due within ``?days=`` days (default 7)
    """
    def upcoming(params):
        return services.upcoming_due_report(days=params['days'], today=params.get('today'))
    return _run_report(request, upcoming)


@api_view(['GET'])
@permission_classes([IsManager])
def late_fees(request):
    def fees(params):
        return services.late_fee_report(
            params.get('date_from'), params.get('date_to'), today=params.get('today')
        )
    return _run_report(request, fees)


@api_view(['GET'])
@permission_classes([IsManager])
def product_profit(request):
    def profit(params):
        return services.product_profit_report(params.get('date_from'), params.get('date_to'))
    return _run_report(request, profit)
