"""
Tests for GET /catalog
"""
import httpx
import pytest

from app.domain.services.pricing_service import amount_from_package


class TestCatalog:

    @pytest.mark.integration
    async def test_lists_all_services(self, test_client: httpx.AsyncClient) -> None:
        response = await test_client.get("/catalog")

        assert response.status_code == 200
        services = response.json()["services"]
        assert set(services) == {"airtime", "data", "electricity", "tv", "internet", "water"}
        assert services["airtime"]["providers"] == ["MTN", "Airtel", "Glo", "9mobile"]
        assert services["airtime"]["minAmount"] == 100
        assert services["electricity"]["minAmount"] == 100

    @pytest.mark.integration
    async def test_quick_amounts(self, test_client: httpx.AsyncClient) -> None:
        response = await test_client.get("/catalog")

        assert response.json()["quickAmounts"] == [1000, 2000, 5000, 10000, 20000, 50000]

    @pytest.mark.integration
    async def test_packages_only_for_data_and_tv(self, test_client: httpx.AsyncClient) -> None:
        services = (await test_client.get("/catalog")).json()["services"]

        with_packages = {name for name, entry in services.items() if entry["packages"]}
        assert with_packages == {"data", "tv"}
        assert set(services["tv"]["packages"]) == set(services["tv"]["providers"])

    @pytest.mark.integration
    async def test_every_package_label_has_a_price(self, test_client: httpx.AsyncClient) -> None:
        services = (await test_client.get("/catalog")).json()["services"]

        for entry in services.values():
            for labels in entry["packages"].values():
                for label in labels:
                    assert amount_from_package(label) > 0, label

    @pytest.mark.integration
    async def test_catalog_package_can_be_paid(self, test_client: httpx.AsyncClient, auth_headers) -> None:
        services = (await test_client.get("/catalog")).json()["services"]
        label = services["data"]["packages"]["Airtel"][0]

        response = await test_client.post(
            "/payments",
            json={"service": "data", "provider": "Airtel", "package": label, "phoneNumber": "08021234567"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["transaction"]["amount"] == amount_from_package(label)
