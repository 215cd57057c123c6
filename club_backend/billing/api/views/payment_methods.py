# billing/api/views/payment_methods.py

"""
MEMBER PAYMENT METHODS

    GET    /api/billing/payment-methods/
    POST   /api/billing/payment-methods/
    POST   /api/billing/payment-methods/<uuid>/default/
    DELETE /api/billing/payment-methods/<uuid>/
"""

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.response import Response

from billing.api.pagination import BillingPagination
from billing.api.serializers import CardSerializer, PaymentMethodSerializer
from billing.api.views.base import BillingAPIView
from billing.services.payment_methods import (
    deactivate_payment_method,
    list_payment_methods,
    save_payment_method,
    set_default_payment_method,
)
from permissions.roles import CAP_PAYMENT_METHODS_MANAGE_OWN


class PaymentMethodListCreateView(BillingAPIView):
    required_capability = CAP_PAYMENT_METHODS_MANAGE_OWN

    @extend_schema(tags=["Billing"], responses={200: PaymentMethodSerializer(many=True)})
    def get(self, request):
        paginator = BillingPagination()
        page = paginator.paginate_queryset(
            list_payment_methods(self.get_principal()), request, view=self
        )
        return paginator.get_paginated_response(PaymentMethodSerializer(page, many=True).data)

    @extend_schema(
        tags=["Billing"],
        request=CardSerializer,
        responses={
            201: PaymentMethodSerializer,
            400: OpenApiResponse(description="Invalid card fields"),
        },
        description="Tokenize and store a card. The first card becomes the default.",
    )
    def post(self, request):
        card = CardSerializer(data=request.data)
        card.is_valid(raise_exception=True)

        method = save_payment_method(self.get_principal(), card.validated_data)
        return Response(PaymentMethodSerializer(method).data, status=status.HTTP_201_CREATED)


class PaymentMethodDefaultView(BillingAPIView):
    required_capability = CAP_PAYMENT_METHODS_MANAGE_OWN

    @extend_schema(tags=["Billing"], request=None, responses={200: PaymentMethodSerializer})
    def post(self, request, payment_method_id):
        method = set_default_payment_method(self.get_principal(), payment_method_id)
        return Response(PaymentMethodSerializer(method).data)


class PaymentMethodDetailView(BillingAPIView):
    required_capability = CAP_PAYMENT_METHODS_MANAGE_OWN

    @extend_schema(tags=["Billing"], responses={200: PaymentMethodSerializer})
    def delete(self, request, payment_method_id):
        method = deactivate_payment_method(self.get_principal(), payment_method_id)
        return Response(PaymentMethodSerializer(method).data)
