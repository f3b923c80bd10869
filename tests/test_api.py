"""Tests for the HTTP boundary (FastAPI)."""

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from conftest import VALID_NUMBER
from core.services.pairing import PairingService
from fakes import FakeClient


def _client(settings, store, providers, **connection_kwargs):
    service = PairingService(
        settings=settings,
        client=FakeClient(**connection_kwargs),
        store=store,
        providers=providers,
    )
    return TestClient(create_app(service))


class TestPairingEndpoint:
    def test_returns_code(self, settings, store, providers):
        with _client(settings, store, providers) as http:
            response = http.get("/", params={"number": VALID_NUMBER})

        assert response.status_code == 200
        assert response.json() == {"code": "ABCD-EFGH"}

    def test_missing_number_is_418(self, settings, store, providers):
        with _client(settings, store, providers) as http:
            response = http.get("/")

        assert response.status_code == 418
        assert response.json() == {"message": "Phone number is required"}

    @pytest.mark.parametrize("number", ["abc", "12345"])
    def test_invalid_number_is_400(self, settings, store, providers, number):
        with _client(settings, store, providers) as http:
            response = http.get("/", params={"number": number})

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid phone number provided."}

    def test_pairing_failure_is_503(self, settings, store, providers):
        with _client(settings, store, providers, fail_code=True) as http:
            response = http.get("/", params={"number": VALID_NUMBER})

        assert response.status_code == 503
        assert response.json() == {"message": "Service Unavailable"}

    def test_health(self, settings, store, providers):
        with _client(settings, store, providers) as http:
            assert http.get("/health").json() == {"status": "ok"}
