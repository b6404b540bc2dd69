from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from rest_framework.response import Response

from .serializers import DashboardStatsSerializer
from .services import get_dashboard_stats


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def dashboard_stats(request):
    """Revenue, order counts by stage and the latest orders"""
    return Response(DashboardStatsSerializer(get_dashboard_stats()).data)
