"""
URL routes for the stock ledger API.

    path('api/v1/', include('stockledger.api.urls')),
"""

from django.urls import path

from stockledger.api import views

app_name = 'stockledger'

urlpatterns = [
    path('fractionation/calculate', views.FractionationCalculateView.as_view(), name='fractionation-calculate'),
    path('fractionation/execute', views.FractionationExecuteView.as_view(), name='fractionation-execute'),
    path('fractionations', views.FractionationListView.as_view(), name='fractionation-list'),
    path('fractionations/<int:pk>', views.FractionationDetailView.as_view(), name='fractionation-detail'),
    path('conversions', views.ConversionListView.as_view(), name='conversion-list'),
    path('inventory-movements', views.MovementListCreateView.as_view(), name='movement-list'),
    path('inventory-movements/<int:pk>', views.MovementDetailView.as_view(), name='movement-detail'),
    path('stock', views.StockListView.as_view(), name='stock-list'),
    path('stock/<int:pk>', views.StockThresholdView.as_view(), name='stock-thresholds'),
    path('warehouses/<int:pk>/stock', views.WarehouseStockSummaryView.as_view(), name='warehouse-stock'),
    path(
        'warehouse-locations/<int:pk>/stock', views.LocationStockSummaryView.as_view(), name='location-stock',
    ),
]
