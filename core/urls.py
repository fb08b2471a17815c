"""
URL configuration for core project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path, include

from dashboards.urls import report_urlpatterns, cron_urlpatterns

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/analytics/', include('dashboards.analytics_urls', namespace='analytics')),
    path('api/reports/', include((report_urlpatterns, 'reports'))),
    path('api/cron/', include((cron_urlpatterns, 'cron'))),
]
