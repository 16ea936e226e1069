from decimal import Decimal

import pytest
from pydantic import ValidationError

from modules.appsettings.dtos import UpdateAppSettingsDTO
from modules.appsettings.models import AppSettings
from modules.appsettings.services import AppSettingsService

pytestmark = pytest.mark.unit


@pytest.fixture
def service():
    return AppSettingsService()


class TestBranding:
    def test_defaults_without_row(self, service):
        branding = service.branding()

        assert branding.company_name == "B2B Vegetable"
        assert branding.currency == "USD"
        assert branding.vat_percentage is None

    def test_defaults_with_vat_requested(self, service):
        assert service.branding(include_vat=True).vat_percentage == 0

    def test_reads_configured_row(self, service, app_settings):
        branding = service.branding(include_vat=True)

        assert branding.company_name == "Fresh Fields"
        assert branding.currency == "EUR"
        assert branding.support_email == "help@freshfields.com"
        assert branding.vat_percentage == Decimal("10.00")

    def test_blank_company_name_falls_back(self, service):
        AppSettings.objects.create(company_name="")
        assert service.branding().company_name == "B2B Vegetable"

    def test_serialises_camel_case(self, service, app_settings):
        data = service.branding().model_dump(by_alias=True, exclude_none=True)
        assert {"companyName", "logoUrl", "supportEmail", "supportPhone"} <= set(data)


class TestUpdateAppSettings:
    def test_creates_row_on_first_update(self, service):
        current = service.update_app_settings(
            UpdateAppSettingsDTO(company_name="Green Fields", vat_percentage="8")
        )

        assert AppSettings.objects.count() == 1
        assert current.company_name == "Green Fields"
        assert current.vat_percentage == Decimal("8")

    def test_partial_update_keeps_other_fields(self, service, app_settings):
        service.update_app_settings(UpdateAppSettingsDTO(support_phone="+1 555 0100"))

        app_settings.refresh_from_db()
        assert app_settings.support_phone == "+1 555 0100"
        assert app_settings.company_name == "Fresh Fields"

    @pytest.mark.parametrize("vat", ["-1", "100.01"])
    def test_vat_out_of_range(self, vat):
        with pytest.raises(ValidationError):
            UpdateAppSettingsDTO(vat_percentage=vat)
