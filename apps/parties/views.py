from django.db.models import Q
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.response import Response
import logging

from apps.authentication.permissions import IsStaffMember
from .models import Party, CreditRegisterEntry
from .serializers import PartySerializer, PartySearchSerializer, CreditRegisterEntrySerializer

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def search_parties(query):
    """Case-insensitive match on name, phone, national ID or email; newest first"""
    parties = Party.objects.all()
    term = (query or '').strip()
    if term:
        parties = parties.filter(
            Q(full_name__icontains=term) |
            Q(phone__icontains=term) |
            Q(national_id__icontains=term) |
            Q(email__icontains=term)
        )
    return parties.order_by('-created_at')[:SEARCH_LIMIT]


class PartyViewSet(viewsets.ModelViewSet):
    serializer_class = PartySerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = Party.objects.all()
        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)
        return queryset

    def perform_create(self, serializer):
        party = serializer.save()
        logger.info(f"Party {party.id} ({party.role}) created")

    @action(detail=True, methods=['get', 'post'], url_path='register')
    def register(self, request, pk=None):
        """List or add manual entries on a customer's credit register"""
        customer = self.get_object()
        if customer.role != 'customer':
            return Response(
                {'error': 'Credit register is only kept for customers'},
                status=status.HTTP_400_BAD_REQUEST
            )

        if request.method == 'GET':
            entries = customer.register_entries.select_related('created_by')
            return Response({
                'customer_id': customer.id,
                'available_credit': customer.available_credit,
                'entries': CreditRegisterEntrySerializer(entries, many=True).data,
            })

        serializer = CreditRegisterEntrySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = serializer.save(customer=customer, created_by=request.user)
        logger.info(
            f"Manual {entry.transaction_type} of {entry.amount} recorded for customer {customer.id}"
        )
        return Response(CreditRegisterEntrySerializer(entry).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsStaffMember])
def party_search(request):
    parties = search_parties(request.query_params.get('q'))
    return Response(PartySearchSerializer(parties, many=True).data)
