"""
URL configuration for the retail back-office API.

Every app contributes its routes under ``/api/v2/``.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Retail Back-Office Admin"
admin.site.site_title = "Retail Back-Office Admin Portal"
admin.site.index_title = "Welcome to the Retail Back-Office"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v2/', include('backoffice.core.urls')),
    path('api/v2/', include('backoffice.locations.urls')),
    path('api/v2/', include('backoffice.catalog.urls')),
    path('api/v2/', include('backoffice.inventory.urls')),
    path('api/v2/', include('backoffice.parties.urls')),
    path('api/v2/', include('backoffice.purchasing.urls')),
    path('api/v2/', include('backoffice.orders.urls')),
    path('api/v2/', include('backoffice.promotions.urls')),
    path('api/v2/', include('backoffice.finance.urls')),
    path('api/v2/', include('backoffice.reports.urls')),
]
