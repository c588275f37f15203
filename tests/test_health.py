from unittest import mock

import pytest
from django.db import DatabaseError
from rest_framework.test import APIClient


@pytest.fixture
def health(db):
    return lambda: APIClient().get("/health/")


def test_healthy(health):
    response = health()

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "KH Holdings Insurance API"
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["checks"]["cache"]["status"] == "healthy"
    assert body["checks"]["payment_gateway"] == {
        "status": "unhealthy",
        "message": "Curlec payment gateway not configured",
        "configured": False,
        "sandbox": True,
    }


def test_database_down_is_unavailable(health):
    with mock.patch("khholdings.health._ping_database", side_effect=DatabaseError("refused")):
        response = health()

    assert response.status_code == 503
    assert response.json()["checks"]["database"]["message"] == "Database connection failed: refused"
