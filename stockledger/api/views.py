"""
HTTP interface for the stock ledger (Django REST framework).

Endpoints:
  - POST fractionation/calculate      preview, never writes
  - POST fractionation/execute        commit (Idempotency-Key header honoured)
  - GET  fractionations               paginated history (?status=&include=)
  - GET  fractionations/<id>
  - GET  conversions?sourceProductId= allowed destinations
  - GET/POST inventory-movements      history / record()
  - GET/DELETE inventory-movements/<id>  (delete = discard draft)
  - GET  stock?productId=&warehouseId=&locationId=&lowStock=
  - PATCH stock/<id>                  replenishment thresholds
  - GET  warehouses/<id>/stock        warehouse summary
  - GET  warehouse-locations/<id>/stock  location summary
"""

from datetime import datetime, time

from django.conf import settings
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework import generics, status
from rest_framework.exceptions import ValidationError
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from stockledger.api.serializers import (
    ConversionSerializer,
    FractionationInputSerializer,
    FractionationSerializer,
    MovementInputSerializer,
    MovementSerializer,
    StockSerializer,
    ThresholdInputSerializer,
    preview_to_representation,
    summary_to_representation,
)
from stockledger.conf import stockledger_settings
from stockledger.exceptions import (
    ConversionNotConfigured,
    InfrastructureFault,
    InsufficientStock,
    LockTimeout,
    StockError,
)
from stockledger.models import Fractionation, FractionationStatus, Location, Warehouse
from stockledger.services import (
    ConversionCatalog,
    FractionationService,
    MovementLedger,
    StockProjection,
)

ERROR_STATUS = {
    'immutable_movement': status.HTTP_409_CONFLICT,
    'immutable_fractionation': status.HTTP_409_CONFLICT,
    'movement_not_found': status.HTTP_404_NOT_FOUND,
    'stock_not_found': status.HTTP_404_NOT_FOUND,
    'idempotency_key_reused': status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def error_response(exc: StockError) -> Response:
    """Translate a StockError into an HTTP response, keeping its content."""
    body = exc.as_dict()
    headers = {}

    if isinstance(exc, InsufficientStock):
        code = status.HTTP_409_CONFLICT
        body['available'] = str(exc.available)
        body['required'] = str(exc.required)
    elif isinstance(exc, ConversionNotConfigured):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, LockTimeout):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
        headers['Retry-After'] = '1'
    elif isinstance(exc, InfrastructureFault):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST)

    return Response(body, status=code, headers=headers)


def _current_user(request):
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return user
    return None


def _int_param(request, name):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError({name: 'Must be an integer.'})


def _datetime_param(request, name):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    try:
        parsed = parse_datetime(value)
        day = None if parsed else parse_date(value)
    except ValueError:
        parsed = day = None
    if parsed is None:
        if day is None:
            raise ValidationError({name: 'Must be an ISO date or datetime.'})
        parsed = datetime.combine(day, time.max if name == 'dateTo' else time.min)
    if settings.USE_TZ and timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


class StockErrorMixin:
    """Render StockError as a structured response instead of a 500."""

    def handle_exception(self, exc):
        if isinstance(exc, StockError):
            return error_response(exc)
        return super().handle_exception(exc)


class LedgerPagination(PageNumberPagination):
    page_size_query_param = 'pageSize'

    def get_page_size(self, request):
        self.page_size = stockledger_settings.PAGE_SIZE
        self.max_page_size = stockledger_settings.MAX_PAGE_SIZE
        return super().get_page_size(request)


# ══════════════════════════════════════════════════════════════
# FRACTIONATION
# ══════════════════════════════════════════════════════════════

class FractionationCalculateView(StockErrorMixin, APIView):
    """Preview-as-you-type. Read-only and idempotent."""

    def post(self, request):
        serializer = FractionationInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        preview = FractionationService.calculate(serializer.to_request())
        return Response(preview_to_representation(preview))


class FractionationExecuteView(StockErrorMixin, APIView):

    def post(self, request):
        serializer = FractionationInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        fractionation = FractionationService.execute(
            serializer.to_request(),
            user=_current_user(request),
            idempotency_key=request.headers.get('Idempotency-Key') or None,
        )
        data = FractionationSerializer(fractionation, context={'include': ['movements']}).data
        # Availability after commit
        data['availableStock'] = {
            'source': str(StockProjection.available(fractionation.source_product_id, fractionation.warehouse_id)),
            'destination': str(
                StockProjection.available(fractionation.destination_product_id, fractionation.warehouse_id)
            ),
        }
        return Response(data, status=status.HTTP_201_CREATED)


class FractionationIncludeMixin:

    def get_include(self):
        raw = self.request.query_params.get('include', '')
        requested = [part.strip() for part in raw.split(',') if part.strip()]
        unknown = [part for part in requested if part not in FractionationSerializer.INCLUDES]
        if unknown:
            raise ValidationError({'include': f"Unknown include: {', '.join(unknown)}"})
        return requested

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['include'] = self.get_include()
        return context

    def with_relations(self, qs):
        return qs.select_related(
            'source_product', 'destination_product', 'warehouse',
            'exit_movement', 'entry_movement',
        )


class FractionationListView(StockErrorMixin, FractionationIncludeMixin, generics.ListAPIView):
    serializer_class = FractionationSerializer
    pagination_class = LedgerPagination

    def get_queryset(self):
        status_filter = self.request.query_params.get('status') or None
        if status_filter and status_filter not in FractionationStatus.values:
            raise ValidationError({'status': f"Unknown status: {status_filter}"})
        history = FractionationService.history(
            status=status_filter,
            warehouse_id=_int_param(self.request, 'warehouseId'),
            product_id=_int_param(self.request, 'productId'),
        )
        return self.with_relations(history)


class FractionationDetailView(StockErrorMixin, FractionationIncludeMixin, generics.RetrieveAPIView):
    serializer_class = FractionationSerializer

    def get_queryset(self):
        return self.with_relations(Fractionation.objects.all())


# ══════════════════════════════════════════════════════════════
# CONVERSIONS
# ══════════════════════════════════════════════════════════════

class ConversionListView(StockErrorMixin, APIView):

    def get(self, request):
        source_product_id = _int_param(request, 'sourceProductId')
        if source_product_id is None:
            raise ValidationError({'sourceProductId': 'This parameter is required.'})
        conversions = ConversionCatalog.list_by_source(source_product_id)
        return Response(ConversionSerializer(conversions, many=True).data)


# ══════════════════════════════════════════════════════════════
# MOVEMENTS
# ══════════════════════════════════════════════════════════════

class MovementListCreateView(StockErrorMixin, generics.ListAPIView):
    serializer_class = MovementSerializer
    pagination_class = LedgerPagination

    def get_queryset(self):
        params = self.request.query_params
        return MovementLedger.history(
            product_id=_int_param(self.request, 'productId'),
            warehouse_id=_int_param(self.request, 'warehouseId'),
            location_id=_int_param(self.request, 'locationId'),
            movement_type=params.get('movementType') or None,
            reference_type=params.get('referenceType') or None,
            reference_id=_int_param(self.request, 'referenceId'),
            status=params.get('status') or None,
            date_from=_datetime_param(self.request, 'dateFrom'),
            date_to=_datetime_param(self.request, 'dateTo'),
        ).prefetch_related('lines')

    def post(self, request):
        serializer = MovementInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        movement = MovementLedger.record(serializer.to_draft(), user=_current_user(request))
        return Response(MovementSerializer(movement).data, status=status.HTTP_201_CREATED)


class MovementDetailView(StockErrorMixin, APIView):

    def get(self, request, pk):
        return Response(MovementSerializer(MovementLedger.get(pk)).data)

    def delete(self, request, pk):
        MovementLedger.discard(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ══════════════════════════════════════════════════════════════
# STOCK
# ══════════════════════════════════════════════════════════════

class StockListView(StockErrorMixin, generics.ListAPIView):
    serializer_class = StockSerializer
    pagination_class = LedgerPagination

    def get_queryset(self):
        return StockProjection.lines(
            product_id=_int_param(self.request, 'productId'),
            warehouse_id=_int_param(self.request, 'warehouseId'),
            location_id=_int_param(self.request, 'locationId'),
            include_empty=self.request.query_params.get('includeEmpty') == 'true',
            low_stock=self.request.query_params.get('lowStock') == 'true',
        )


class StockThresholdView(StockErrorMixin, APIView):
    """PATCH replaces minimumStock/maximumStock/reorderPoint of one line."""

    def patch(self, request, pk):
        serializer = ThresholdInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        stock = StockProjection.set_thresholds(
            pk,
            minimum_stock=data['minimumStock'],
            maximum_stock=data['maximumStock'],
            reorder_point=data['reorderPoint'],
        )
        return Response(StockSerializer(stock).data)


class WarehouseStockSummaryView(StockErrorMixin, APIView):

    def get(self, request, pk):
        warehouse = get_object_or_404(Warehouse, pk=pk)
        return Response(summary_to_representation(StockProjection.warehouse_summary(warehouse.pk)))


class LocationStockSummaryView(StockErrorMixin, APIView):

    def get(self, request, pk):
        location = get_object_or_404(Location, pk=pk)
        return Response(summary_to_representation(StockProjection.location_summary(location.pk)))
