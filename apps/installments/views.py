from rest_framework import status, viewsets, mixins
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response
from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
import logging

from apps.authentication.permissions import IsManager, IsStaffMember
from .models import InstallmentPlan, PlanGuarantor
from .serializers import (
    InstallmentPlanCreateSerializer,
    InstallmentPlanSerializer,
    PlanGuarantorSerializer,
    PlanPreviewSerializer,
    PaymentSerializer,
    RepaymentEntrySerializer,
)
from .signals import refresh_statuses
from .utils import error_message as _error_message, get_plan_summary, pay_installment, preview_plan

logger = logging.getLogger(__name__)


class InstallmentPlanViewSet(mixins.CreateModelMixin,
                             mixins.ListModelMixin,
                             mixins.RetrieveModelMixin,
                             mixins.DestroyModelMixin,
                             viewsets.GenericViewSet):
    serializer_class = InstallmentPlanSerializer
    permission_classes = [IsStaffMember]

    def get_serializer_class(self):
        if self.action == 'create':
            return InstallmentPlanCreateSerializer
        return InstallmentPlanSerializer

    def get_permissions(self):
        if self.action in ('destroy', 'mark_defaulted'):
            return [IsManager()]
        return [IsStaffMember()]

    def get_queryset(self):
        queryset = InstallmentPlan.objects.select_related(
            'customer', 'product', 'created_by'
        ).prefetch_related('schedule', 'plan_guarantors__party')

        params = self.request.query_params
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get('customer'):
            queryset = queryset.filter(customer_id=params['customer'])
        if params.get('q'):
            term = params['q']
            queryset = queryset.filter(
                Q(customer__full_name__icontains=term) |
                Q(customer__phone__icontains=term) |
                Q(customer__national_id__icontains=term) |
                Q(product__name__icontains=term)
            )
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        plan = serializer.save()
        plan = self.get_queryset().get(pk=plan.pk)
        return Response(InstallmentPlanSerializer(plan).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        """Cancel the plan; repayment history is kept"""
        plan = self.get_object()
        if plan.status in ('completed', 'cancelled'):
            return Response(
                {'error': f'Cannot cancel a {plan.status} plan'},
                status=status.HTTP_400_BAD_REQUEST
            )

        plan.status = 'cancelled'
        plan.save(update_fields=['status', 'updated_at'])
        logger.info(f"Plan {plan.id} cancelled by {request.user.username}")
        return Response({'message': 'Plan cancelled', 'status': plan.status})

    @action(detail=True, methods=['post'])
    def pay(self, request, pk=None):
        plan = self.get_object()
        serializer = PaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = pay_installment(
                plan,
                data['installment_number'],
                data['amount'],
                use_credit_balance=data['use_credit_balance'],
                user=request.user,
            )
        except ValidationError as e:
            logger.warning(f"Payment rejected on plan {plan.id}: {_error_message(e)}")
            return Response({'error': _error_message(e)}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.error(f"Unexpected error paying installment on plan {plan.id}: {e}")
            return Response(
                {'error': 'An unexpected error occurred while processing payment'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        entry = result['entry']
        if entry.status == 'partial':
            message = f"Partial payment recorded. Remaining: {result['remaining_for_entry']}"
        else:
            message = 'Payment processed successfully'

        return Response({
            'message': message,
            'status': entry.status,
            'overpayment': result['overpayment'],
            'credit_applied': result['credit_applied'],
            'actual_paid_amount': entry.actual_paid_amount,
            'credit_adjusted_amount': entry.credit_adjusted_amount,
            'remaining_for_entry': result['remaining_for_entry'],
            'installment': RepaymentEntrySerializer(entry).data,
            'plan_status': result['plan'].status,
        })

    @action(detail=True, methods=['post'], url_path='mark-defaulted')
    def mark_defaulted(self, request, pk=None):
        plan = self.get_object()
        if plan.status != 'active':
            return Response(
                {'error': f'Only active plans can be marked defaulted, this plan is {plan.status}'},
                status=status.HTTP_400_BAD_REQUEST
            )

        plan.status = 'defaulted'
        plan.save(update_fields=['status', 'updated_at'])
        logger.warning(f"Plan {plan.id} marked defaulted by {request.user.username}")
        return Response({'message': 'Plan marked as defaulted', 'status': plan.status})

    @action(detail=True, methods=['get'])
    def summary(self, request, pk=None):
        plan = self.get_object()
        return Response(get_plan_summary(plan))

    @action(detail=True, methods=['get', 'post'])
    def guarantors(self, request, pk=None):
        plan = self.get_object()

        if request.method == 'GET':
            links = plan.plan_guarantors.select_related('party')
            return Response(PlanGuarantorSerializer(links, many=True).data)

        serializer = PlanGuarantorSerializer(data=request.data, context={'plan': plan, 'request': request})
        serializer.is_valid(raise_exception=True)
        link = serializer.save()
        logger.info(f"Party {link.party_id} added as guarantor on plan {plan.id}")
        return Response(PlanGuarantorSerializer(link).data, status=status.HTTP_201_CREATED)

    @action(
        detail=True,
        methods=['put', 'patch', 'delete'],
        url_path=r'guarantors/(?P<guarantor_id>\d+)'
    )
    def guarantor_detail(self, request, pk=None, guarantor_id=None):
        plan = self.get_object()
        link = get_object_or_404(PlanGuarantor, pk=guarantor_id, plan=plan)

        if request.method == 'DELETE':
            link.delete()
            logger.info(f"Guarantor link {guarantor_id} removed from plan {plan.id}")
            return Response(status=status.HTTP_204_NO_CONTENT)

        serializer = PlanGuarantorSerializer(
            link,
            data=request.data,
            partial=request.method == 'PATCH',
            context={'plan': plan, 'request': request}
        )
        serializer.is_valid(raise_exception=True)
        link = serializer.save()
        return Response(PlanGuarantorSerializer(link).data)


@api_view(['POST'])
@permission_classes([IsStaffMember])
def preview(request):
    """Compute plan totals and the full schedule without saving anything"""
    serializer = PlanPreviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    interest_rate = data.get('interest_rate')
    if interest_rate is None:
        interest_rate = Decimal(str(settings.DEFAULT_INTEREST_RATE))

    try:
        result = preview_plan(
            data['product_price'],
            data['down_payment'],
            interest_rate,
            data['tenure'],
            data['start_date'],
            tenor_type=data['tenor_type'],
            finance_amount=data.get('finance_amount'),
        )
    except ValidationError as e:
        return Response({'error': _error_message(e)}, status=status.HTTP_400_BAD_REQUEST)

    return Response(result)


@api_view(['POST'])
@permission_classes([IsManager])
def refresh_repayment_statuses(request):
    """Run the status refresh now instead of waiting for the scheduled task"""
    try:
        with transaction.atomic():
            result = refresh_statuses()
    except Exception as e:
        logger.error(f"Error refreshing repayment statuses: {e}")
        return Response(
            {'error': 'Failed to refresh repayment statuses'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    return Response(result)
