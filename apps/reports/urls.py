from django.urls import path
from . import views

urlpatterns = [
    path('collections/', views.installment_collection, name='report_collections'),
    path('outstanding/', views.outstanding_balance, name='report_outstanding'),
    path('profit-loss/', views.profit_and_loss, name='report_profit_loss'),
    path('customers/<int:customer_id>/ledger/', views.customer_ledger, name='report_customer_ledger'),
    path('defaulters/', views.defaulters, name='report_defaulters'),
    path('payment-history/', views.payment_history, name='report_payment_history'),
    path('sales-summary/', views.sales_summary, name='report_sales_summary'),
    path('default-rate/', views.default_rate, name='report_default_rate'),
    path('due-today/', views.due_today, name='report_due_today'),
    path('upcoming-due/', views.upcoming_due, name='report_upcoming_due'),
    path('late-fees/', views.late_fees, name='report_late_fees'),
    path('product-profit/', views.product_profit, name='report_product_profit'),
]
