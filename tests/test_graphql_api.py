"""
End-to-end tests for the GraphQL API over HTTP.

Requests go through the FastAPI app with the store dependency pointed at an
in-memory store.
"""

import httpx
import pytest
import pytest_asyncio
from bson import ObjectId

from app.api.dependencies import get_store
from app.main import app
from app.models import ATTENDANCE_COLLECTION, EMPLOYEES_COLLECTION

from tests.conftest import employee_document

CREATE_EMPLOYEE = """
mutation Create($input: CreateEmployeeInput!) {
  createEmployee(input: $input) {
    success
    message
    errors { field message code }
    employee { id name email attendance class role }
  }
}
"""

MARK_ATTENDANCE = """
mutation Mark($input: AttendanceInput!) {
  markAttendance(input: $input) {
    success
    message
    errors { field code }
    employee { id attendance lastAttendanceUpdate }
  }
}
"""

EMPLOYEE_WITH_RECORDS = """
query Employee($id: ID!) {
  employee(id: $id) {
    name
    attendanceRecords { formattedDate present notes employee { name } creator { id } }
    attendanceSummary { totalDays presentDays attendancePercentage }
  }
}
"""


@pytest_asyncio.fixture
async def client(store):
    app.dependency_overrides[get_store] = lambda: store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def graphql(client, query, variables=None, token=None):
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    response = await client.post(
        "/graphql", json={"query": query, "variables": variables or {}}, headers=headers
    )
    assert response.status_code == 200
    return response.json()


def error_codes(body):
    return [error["extensions"]["code"] for error in body.get("errors", [])]


# Authentication and authorization


@pytest.mark.asyncio
async def test_anonymous_request_is_unauthenticated(client):
    body = await graphql(client, "{ employees { edges { id } } }")

    assert error_codes(body) == ["UNAUTHENTICATED"]
    assert body["data"] is None


@pytest.mark.asyncio
async def test_invalid_token_is_unauthenticated(client):
    body = await graphql(client, "{ employees { edges { id } } }", token="garbage")

    assert error_codes(body) == ["UNAUTHENTICATED"]
    assert body["errors"][0]["message"] == "Invalid token"


@pytest.mark.asyncio
async def test_employee_cannot_read_stats(client, employee_token):
    body = await graphql(client, "{ employeeStats { totalEmployees } }", token=employee_token)

    assert error_codes(body) == ["FORBIDDEN"]


@pytest.mark.asyncio
async def test_employee_cannot_create_employees(client, store, employee_token):
    body = await graphql(
        client,
        CREATE_EMPLOYEE,
        {
            "input": {
                "name": "John Smith",
                "email": "john@example.com",
                "age": 25,
                "class": "Support",
                "subjects": ["Networking"],
                "role": "EMPLOYEE",
            }
        },
        token=employee_token,
    )

    assert error_codes(body) == ["FORBIDDEN"]
    assert len(store.collections[EMPLOYEES_COLLECTION]) == 1


@pytest.mark.asyncio
async def test_employee_reads_only_own_record(client, store, employee, employee_token):
    other = store.seed(EMPLOYEES_COLLECTION, employee_document(email="other@example.com"))
    query = "query E($id: ID!) { employee(id: $id) { email } }"

    own = await graphql(client, query, {"id": str(employee["_id"])}, token=employee_token)
    foreign = await graphql(client, query, {"id": str(other["_id"])}, token=employee_token)

    assert own["data"]["employee"]["email"] == "jane.doe@example.com"
    assert error_codes(foreign) == ["FORBIDDEN"]


@pytest.mark.asyncio
async def test_attendance_records_hidden_for_other_employees(client, store, employee_token):
    store.seed(EMPLOYEES_COLLECTION, employee_document(email="other@example.com"))

    body = await graphql(
        client,
        "{ employees(sort: NAME_ASC) { edges { email attendanceRecords { present } } } }",
        token=employee_token,
    )

    edges = {edge["email"]: edge for edge in body["data"]["employees"]["edges"]}
    assert edges["jane.doe@example.com"]["attendanceRecords"] == []
    assert edges["other@example.com"]["attendanceRecords"] is None
    assert error_codes(body) == ["FORBIDDEN"]


# Employees


@pytest.mark.asyncio
async def test_create_employee(client, store, admin_token):
    body = await graphql(
        client,
        CREATE_EMPLOYEE,
        {
            "input": {
                "name": "John Smith",
                "email": "John@Example.com",
                "age": 25,
                "class": "Support",
                "subjects": ["Networking"],
                "role": "EMPLOYEE",
            }
        },
        token=admin_token,
    )

    payload = body["data"]["createEmployee"]
    assert payload["success"] is True
    assert payload["errors"] is None
    assert payload["employee"]["email"] == "john@example.com"
    assert payload["employee"]["attendance"] == 100.0
    assert payload["employee"]["class"] == "Support"
    assert store.get(EMPLOYEES_COLLECTION, payload["employee"]["id"]) is not None


@pytest.mark.asyncio
async def test_create_underage_employee_reports_errors(client, store, admin_token):
    body = await graphql(
        client,
        CREATE_EMPLOYEE,
        {
            "input": {
                "name": "Young Person",
                "email": "young@example.com",
                "age": 17,
                "class": "Support",
                "subjects": ["Networking"],
                "role": "EMPLOYEE",
            }
        },
        token=admin_token,
    )

    payload = body["data"]["createEmployee"]
    assert "errors" not in body
    assert payload["success"] is False
    assert payload["employee"] is None
    assert [(e["field"], e["code"]) for e in payload["errors"]] == [("age", "INVALID_AGE")]
    assert store.collections[EMPLOYEES_COLLECTION] == {}


@pytest.mark.asyncio
async def test_update_missing_employee_reports_not_found(client, admin_token):
    body = await graphql(
        client,
        """
        mutation U($id: ID!) {
          updateEmployee(id: $id, input: {age: 40}) { success message errors { code } }
        }
        """,
        {"id": str(ObjectId())},
        token=admin_token,
    )

    payload = body["data"]["updateEmployee"]
    assert payload["success"] is False
    assert payload["message"] == "Employee not found"
    assert payload["errors"] == [{"code": "NOT_FOUND"}]


@pytest.mark.asyncio
async def test_list_employees_with_filter_and_sort(client, store, admin_token):
    for name, age in [("Carol King", 41), ("Alice Stone", 22), ("Bob Marsh", 29)]:
        store.seed(
            EMPLOYEES_COLLECTION,
            employee_document(name=name, email=f"{name.split()[0].lower()}@example.com", age=age),
        )

    body = await graphql(
        client,
        """
        {
          employees(filter: {minAge: 20, maxAge: 30}, sort: NAME_ASC, page: 1, pageSize: 10) {
            edges { name age }
            pageInfo { totalCount totalPages hasNextPage hasPreviousPage currentPage }
          }
        }
        """,
        token=admin_token,
    )

    result = body["data"]["employees"]
    assert [edge["name"] for edge in result["edges"]] == ["Alice Stone", "Bob Marsh"]
    assert result["pageInfo"] == {
        "totalCount": 2,
        "totalPages": 1,
        "hasNextPage": False,
        "hasPreviousPage": False,
        "currentPage": 1,
    }


@pytest.mark.asyncio
async def test_list_employees_rejects_oversized_page(client, admin_token):
    body = await graphql(client, "{ employees(pageSize: 500) { edges { id } } }", token=admin_token)

    assert error_codes(body) == ["BAD_USER_INPUT"]


# Attendance


@pytest.mark.asyncio
async def test_mark_attendance_flow(client, store, employee, admin_token, admin_identity):
    employee_id = str(employee["_id"])

    first = await graphql(
        client,
        MARK_ATTENDANCE,
        {"input": {"employeeId": employee_id, "date": "2024-06-13", "present": True}},
        token=admin_token,
    )
    second = await graphql(
        client,
        MARK_ATTENDANCE,
        {
            "input": {
                "employeeId": employee_id,
                "date": "2024-06-14",
                "present": False,
                "notes": "Sick leave",
            }
        },
        token=admin_token,
    )

    assert first["data"]["markAttendance"]["employee"]["attendance"] == 100.0
    payload = second["data"]["markAttendance"]
    assert payload["success"] is True
    assert payload["message"] == "Attendance marked successfully"
    assert payload["employee"]["attendance"] == 50.0
    assert payload["employee"]["lastAttendanceUpdate"] is not None

    body = await graphql(client, EMPLOYEE_WITH_RECORDS, {"id": employee_id}, token=admin_token)
    result = body["data"]["employee"]
    assert [r["formattedDate"] for r in result["attendanceRecords"]] == ["2024-06-14", "2024-06-13"]
    assert result["attendanceRecords"][0]["notes"] == "Sick leave"
    assert result["attendanceRecords"][0]["employee"] == {"name": "Jane Doe"}
    assert result["attendanceRecords"][0]["creator"] is None
    assert result["attendanceSummary"] == {
        "totalDays": 2,
        "presentDays": 1,
        "attendancePercentage": 50.0,
    }
    stored = list(store.collections[ATTENDANCE_COLLECTION].values())
    assert {str(doc["created_by"]) for doc in stored} == {admin_identity.id}


@pytest.mark.asyncio
async def test_mark_attendance_twice_on_same_day(client, employee, admin_token):
    variables = {"input": {"employeeId": str(employee["_id"]), "date": "2024-06-14", "present": True}}

    await graphql(client, MARK_ATTENDANCE, variables, token=admin_token)
    body = await graphql(client, MARK_ATTENDANCE, variables, token=admin_token)

    payload = body["data"]["markAttendance"]
    assert payload["success"] is False
    assert payload["errors"] == [{"field": "date", "code": "CONFLICT"}]


@pytest.mark.asyncio
async def test_mark_attendance_for_future_date(client, store, employee, admin_token):
    body = await graphql(
        client,
        MARK_ATTENDANCE,
        {"input": {"employeeId": str(employee["_id"]), "date": "2999-01-01", "present": True}},
        token=admin_token,
    )

    payload = body["data"]["markAttendance"]
    assert payload["success"] is False
    assert payload["errors"] == [{"field": "date", "code": "INVALID_STATE"}]
    assert store.collections[ATTENDANCE_COLLECTION] == {}


@pytest.mark.asyncio
async def test_employee_attendance_query(client, store, employee, employee_token):
    employee_id = str(employee["_id"])
    store.seed(
        ATTENDANCE_COLLECTION,
        {
            "employee_id": employee["_id"],
            "date": employee["created_at"],
            "present": True,
            "notes": None,
            "created_by": ObjectId(),
            "created_at": employee["created_at"],
        },
    )

    body = await graphql(
        client,
        """
        query A($id: ID!) {
          employeeAttendance(id: $id, dateRange: {startDate: "2023-01-01", endDate: "2023-12-31"}) {
            date present
          }
        }
        """,
        {"id": employee_id},
        token=employee_token,
    )

    assert body["data"]["employeeAttendance"] == [{"date": "2023-01-10", "present": True}]


@pytest.mark.asyncio
async def test_recalculate_attendance(client, store, employee, admin_token):
    store.collections[EMPLOYEES_COLLECTION][employee["_id"]]["attendance"] = 3.0

    body = await graphql(
        client,
        "mutation R($id: ID!) { recalculateAttendance(id: $id) { success message employee { attendance } } }",
        {"id": str(employee["_id"])},
        token=admin_token,
    )

    payload = body["data"]["recalculateAttendance"]
    assert payload["success"] is True
    assert payload["message"] == "Attendance recalculated: 100.00%"
    assert payload["employee"]["attendance"] == 100.0


# Stats and health


@pytest.mark.asyncio
async def test_admin_reads_stats(client, store, admin_token):
    store.aggregate_results = [
        [{"_id": None, "total_employees": 1, "average_attendance": 100.0, "average_age": 30.0}],
        [{"_id": "Engineering", "count": 1, "average_attendance": 100.0}],
        [{"_id": "2024-06-14", "total_present": 1, "total_absent": 0, "average_attendance": 100.0}],
    ]

    body = await graphql(
        client,
        """
        {
          employeeStats {
            totalEmployees averageAge
            classDistribution { class count averageAttendance }
            attendanceTrend { date totalPresent totalAbsent }
          }
        }
        """,
        token=admin_token,
    )

    stats = body["data"]["employeeStats"]
    assert stats["totalEmployees"] == 1
    assert stats["classDistribution"] == [
        {"class": "Engineering", "count": 1, "averageAttendance": 100.0}
    ]
    assert stats["attendanceTrend"] == [{"date": "2024-06-14", "totalPresent": 1, "totalAbsent": 0}]


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_readiness_check(client, store, monkeypatch):
    monkeypatch.setattr(app.state, "store", store, raising=False)

    response = await client.get("/ready")

    assert response.json() == {
        "status": "ready",
        "checks": {"database": "ok", "kafka_producer": "ok"},
    }
