from django.http import JsonResponse
from django.urls import include, path


def health_check(request):
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path("health", health_check, name="health"),
    path("", include("bed_and_breakfast.urls")),
]
