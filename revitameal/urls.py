from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('payments.urls')),
]

handler404 = 'revitameal.views.error_404_view'
handler500 = 'revitameal.views.error_500_view'
