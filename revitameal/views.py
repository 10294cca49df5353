from django.http import JsonResponse


def error_404_view(request, exception):
    # the callers are payment providers and the frontend, both expect JSON
    return JsonResponse({"message": "Not Found", "path": request.path}, status=404)


def error_500_view(request):
    return JsonResponse({"message": "Internal Server Error"}, status=500)
