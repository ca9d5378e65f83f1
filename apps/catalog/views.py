from django.db.models import Q
from rest_framework import viewsets

from apps.authentication.permissions import IsStaffMember
from .models import Product
from .serializers import ProductSerializer


class ProductViewSet(viewsets.ModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [IsStaffMember]

    def get_queryset(self):
        queryset = Product.objects.all()
        query = self.request.query_params.get('q')
        if query:
            queryset = queryset.filter(Q(name__icontains=query) | Q(sku__icontains=query))
        if self.request.query_params.get('in_stock') == 'true':
            queryset = queryset.filter(quantity__gt=0)
        return queryset
