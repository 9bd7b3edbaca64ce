"""Tests for appointment and availability endpoints."""

from datetime import timedelta
from unittest.mock import ANY, AsyncMock
from uuid import UUID

import pytest
from conftest import DOCTOR_ID, FIXED_NOW, NEXT_MONDAY, PATIENT_ID
from httpx import AsyncClient

from app.container import ServiceContainer
from app.schemas.appointments import AppointmentStatus


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_detailed_health_check(client: AsyncClient) -> None:
    response = await client.get("/api/v1/health/detailed")
    assert response.status_code == 200
    data = response.json()
    assert data["store"] == "healthy"
    assert data["redis"] == "disabled"
    assert data["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_appointment(
    client: AsyncClient,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    """Test creating an appointment."""
    response = await client.post(
        "/api/v1/appointments/",
        json=booking_data,
        headers=patient_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["patientId"] == str(PATIENT_ID)
    assert data["doctorId"] == str(DOCTOR_ID)
    assert data["payment"] == {
        "amount": 50.0,
        "status": "pending",
        "method": None,
        "transactionId": None,
        "paidAt": None,
    }
    assert "id" in data


@pytest.mark.asyncio
async def test_create_requires_token(client: AsyncClient, booking_data: dict) -> None:
    response = await client.post("/api/v1/appointments/", json=booking_data)
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["error"] == "UnauthorizedException"


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient) -> None:
    response = await client.get(
        "/api/v1/appointments/", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_double_booking_returns_conflict(
    client: AsyncClient,
    patient_headers: dict,
    other_patient_headers: dict,
    booking_data: dict,
) -> None:
    first = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/appointments/", json=booking_data, headers=other_patient_headers
    )
    assert second.status_code == 409
    body = second.json()
    assert body["error"] == "ConflictException"
    assert body["message"] == "This time slot is already booked"
    assert body["path"] == "/api/v1/appointments/"


@pytest.mark.asyncio
async def test_doctor_cannot_book(
    client: AsyncClient, doctor_headers: dict, booking_data: dict
) -> None:
    response = await client.post("/api/v1/appointments/", json=booking_data, headers=doctor_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_malformed_booking(
    client: AsyncClient, patient_headers: dict, booking_data: dict
) -> None:
    booking_data["time"] = "9am"
    response = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    assert response.status_code == 422
    assert response.json()["error"] == "ValidationException"
    assert response.json()["details"]


@pytest.mark.asyncio
async def test_booking_in_the_past(
    client: AsyncClient, patient_headers: dict, booking_data: dict
) -> None:
    booking_data["date"] = (FIXED_NOW.date() - timedelta(days=1)).isoformat()
    response = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    assert response.status_code == 422
    assert "future" in response.json()["message"]


@pytest.mark.asyncio
async def test_list_appointments(
    client: AsyncClient,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    """Test listing appointments."""
    await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    booking_data["time"] = "09:30"
    await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)

    response = await client.get(
        "/api/v1/appointments/",
        params={"pageSize": 1},
        headers=patient_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["pages"] == 2
    assert data["pageSize"] == 1
    assert [item["time"] for item in data["items"]] == ["09:30"]


@pytest.mark.asyncio
async def test_list_filters_by_status(
    client: AsyncClient,
    admin_headers: dict,
    store,
    make_appointment,
) -> None:
    await store.insert(make_appointment(time="09:00"))
    await store.insert(make_appointment(time="09:30", status=AppointmentStatus.CANCELLED))

    response = await client.get(
        "/api/v1/appointments/", params={"status": "cancelled"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_get_appointment(
    client: AsyncClient,
    patient_headers: dict,
    other_patient_headers: dict,
    booking_data: dict,
) -> None:
    """Test getting a specific appointment."""
    create_response = await client.post(
        "/api/v1/appointments/", json=booking_data, headers=patient_headers
    )
    appointment_id = create_response.json()["id"]

    response = await client.get(f"/api/v1/appointments/{appointment_id}", headers=patient_headers)
    assert response.status_code == 200
    assert response.json()["id"] == appointment_id

    forbidden = await client.get(
        f"/api/v1/appointments/{appointment_id}", headers=other_patient_headers
    )
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_get_nonexistent_appointment(client: AsyncClient, admin_headers: dict) -> None:
    response = await client.get(
        "/api/v1/appointments/00000000-0000-0000-0000-000000000000", headers=admin_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_doctor_confirms_appointment(
    client: AsyncClient,
    patient_headers: dict,
    doctor_headers: dict,
    booking_data: dict,
) -> None:
    created = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    appointment_id = created.json()["id"]

    response = await client.put(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "confirmed", "doctorNotes": "Fasting required"},
        headers=doctor_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"
    assert response.json()["doctorNotes"] == "Fasting required"


@pytest.mark.asyncio
async def test_patient_cannot_edit_doctor_notes(
    client: AsyncClient,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    created = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)

    response = await client.put(
        f"/api/v1/appointments/{created.json()['id']}",
        json={"doctorNotes": "Self diagnosis"},
        headers=patient_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_appointment(
    client: AsyncClient,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    created = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    appointment_id = created.json()["id"]

    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/cancel",
        json={"cancellationReason": "Feeling better"},
        headers=patient_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["cancellationReason"] == "Feeling better"
    assert data["cancelledBy"] == str(PATIENT_ID)


@pytest.mark.asyncio
async def test_cancel_without_body(
    client: AsyncClient,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    created = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)

    response = await client.put(
        f"/api/v1/appointments/{created.json()['id']}/cancel", headers=patient_headers
    )
    assert response.status_code == 200
    assert response.json()["cancellationReason"] is None


@pytest.mark.asyncio
async def test_cancel_inside_window_is_a_state_error(
    client: AsyncClient,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    booking_data["date"] = FIXED_NOW.date().isoformat()
    booking_data["time"] = "11:00"
    created = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    assert created.status_code == 201

    response = await client.put(
        f"/api/v1/appointments/{created.json()['id']}/cancel", headers=patient_headers
    )
    assert response.status_code == 409
    assert response.json()["error"] == "StateException"


@pytest.mark.asyncio
async def test_reschedule_appointment(
    client: AsyncClient,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    created = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    appointment_id = created.json()["id"]
    new_day = (NEXT_MONDAY + timedelta(days=1)).isoformat()

    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/reschedule",
        json={"date": new_day, "time": "14:00"},
        headers=patient_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["previous"]["id"] == appointment_id
    assert data["previous"]["status"] == "cancelled"
    assert data["appointment"]["date"] == new_day
    assert data["appointment"]["time"] == "14:00"
    assert data["appointment"]["status"] == "scheduled"


@pytest.mark.asyncio
async def test_delete_appointment(
    client: AsyncClient,
    patient_headers: dict,
    admin_headers: dict,
    booking_data: dict,
) -> None:
    created = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    appointment_id = created.json()["id"]

    forbidden = await client.delete(
        f"/api/v1/appointments/{appointment_id}", headers=patient_headers
    )
    assert forbidden.status_code == 403

    response = await client.delete(f"/api/v1/appointments/{appointment_id}", headers=admin_headers)
    assert response.status_code == 204

    gone = await client.get(f"/api/v1/appointments/{appointment_id}", headers=admin_headers)
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_doctor_availability(
    client: AsyncClient,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)

    response = await client.get(
        f"/api/v1/doctors/{DOCTOR_ID}/availability",
        params={"date": NEXT_MONDAY.isoformat()},
        headers=patient_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["availableSlots"] == ["09:30"]
    assert data["doctor"]["consultationFee"] == 50
    assert data["date"] == NEXT_MONDAY.isoformat()


@pytest.mark.asyncio
async def test_availability_requires_date(client: AsyncClient, patient_headers: dict) -> None:
    response = await client.get(
        f"/api/v1/doctors/{DOCTOR_ID}/availability", headers=patient_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_booking_is_audited_with_the_new_id(
    client: AsyncClient,
    container: ServiceContainer,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    container.audit.record = AsyncMock()

    response = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)

    assert response.status_code == 201
    container.audit.record.assert_awaited_once_with(
        ANY, "appointment.create", UUID(response.json()["id"])
    )


@pytest.mark.asyncio
async def test_failed_booking_is_audited_without_id(
    client: AsyncClient,
    container: ServiceContainer,
    doctor_headers: dict,
    booking_data: dict,
) -> None:
    container.audit.record = AsyncMock()

    response = await client.post("/api/v1/appointments/", json=booking_data, headers=doctor_headers)

    assert response.status_code == 403
    container.audit.record.assert_awaited_once_with(
        ANY, "appointment.create", None, outcome="ForbiddenException"
    )


@pytest.mark.asyncio
async def test_cancelling_twice_through_update_conflicts(
    client: AsyncClient,
    container: ServiceContainer,
    patient_headers: dict,
    booking_data: dict,
) -> None:
    container.notifier.appointment_cancelled = AsyncMock()
    created = await client.post("/api/v1/appointments/", json=booking_data, headers=patient_headers)
    url = f"/api/v1/appointments/{created.json()['id']}"

    first = await client.put(url, json={"status": "cancelled"}, headers=patient_headers)
    second = await client.put(url, json={"status": "cancelled"}, headers=patient_headers)

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"] == "StateException"
    container.notifier.appointment_cancelled.assert_awaited_once()
