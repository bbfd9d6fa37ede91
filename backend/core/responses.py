from rest_framework import status as http_status
from rest_framework.response import Response


def envelope(data=None, message: str = "OK", status: int = http_status.HTTP_200_OK) -> Response:
    return Response({"status": status, "message": message, "data": data}, status=status)
