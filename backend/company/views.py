"""
DRF Views over the raw employee queries.
"""

from rest_framework import permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from .queries import (
    get_all_highest_paid_employees,
    get_employees_by_department,
    get_highest_paid_employee,
)
from .serializers import EmployeeSerializer


class EmployeeListView(APIView):
    """
    GET /api/employees/?department=<name>

    404 when the department has no employees.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        department = request.query_params.get('department', '').strip()
        if not department:
            raise ValueError("The department query parameter is required")
        employees = get_employees_by_department(department)
        return Response(EmployeeSerializer(employees, many=True).data)


class TopEarnerView(APIView):
    """
    GET /api/employees/top/          -> one employee (lowest id on a tie)
    GET /api/employees/top/?ties=1   -> every employee tied for the top salary
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        if request.query_params.get('ties', '').lower() in ('1', 'true', 'yes'):
            employees = get_all_highest_paid_employees()
            return Response(EmployeeSerializer(employees, many=True).data)
        return Response(EmployeeSerializer(get_highest_paid_employee()).data)
