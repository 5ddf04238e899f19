from django.urls import path
from . import views

urlpatterns = [
    path('reports/pnl/', views.profit_and_loss, name='report-pnl'),
    path('reports/sales/daily-summary/', views.daily_summary, name='report-daily-summary'),
    path('reports/sales/monthly-summary/', views.monthly_summary, name='report-monthly-summary'),
    path('reports/sales/yearly-summary/', views.yearly_summary, name='report-yearly-summary'),
    path('reports/sales/top-products/', views.top_products, name='report-top-products'),
    path('reports/sales/by-category/', views.sales_by_category, name='report-sales-by-category'),
    path('reports/sales/by-brand/', views.sales_by_brand, name='report-sales-by-brand'),
    path('reports/sales/sales-vs-discount/', views.sales_vs_discount, name='report-sales-vs-discount'),
    path('reports/sales/by-payment-method/', views.sales_by_payment_method, name='report-sales-by-payment-method'),
    path('reports/sales/refunds-returns/', views.refunds_and_returns, name='report-refunds-returns'),
    path('reports/stocks/live-stock/', views.live_stock, name='report-live-stock'),
    path('reports/stocks/low-stock/', views.low_stock, name='report-low-stock'),
    path('reports/stocks/valuation/', views.stock_valuation, name='report-stock-valuation'),
    path('reports/expenses/', views.expense_report, name='report-expenses'),
    path('reports/customers/', views.customer_analytics, name='report-customers'),
    path('reports/revenues/monthly-revenue/', views.monthly_revenue, name='report-monthly-revenue'),
    path('reports/dashboard/overview/', views.dashboard_overview, name='report-dashboard-overview'),
    path('reports/dashboard/sales/', views.dashboard_sales_performance, name='report-dashboard-sales'),
    path('reports/dashboard/recent-orders/', views.dashboard_recent_orders, name='report-dashboard-recent-orders'),
    path('reports/dashboard/popular-items/', views.dashboard_popular_items, name='report-dashboard-popular-items'),
    path('reports/dashboard/order-status/', views.dashboard_order_status, name='report-dashboard-order-status'),
    path('reports/dashboard/monthly-comparison/', views.dashboard_monthly_comparison, name='report-dashboard-monthly-comparison'),
]
