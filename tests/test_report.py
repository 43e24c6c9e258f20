import asyncio
import json
from datetime import date

import httpx
import pytest

from app import report
from app.payplan import calc_commission
from app.schemas import CustomerData


@pytest.fixture
def resend(monkeypatch):
    """Route the shared HTTP client through a MockTransport; collect sent requests."""
    sent = []
    state = {"status": 200, "body": {"id": "email_123"}}

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(request)
        return httpx.Response(state["status"], json=state["body"])

    monkeypatch.setattr(report, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(report, "_http_client", httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    yield sent, state
    asyncio.run(report.close_http_client())


def _data(make_inputs, customer=None, **overrides):
    inputs = make_inputs(**overrides)
    return report.build_calculation_data(inputs, calc_commission(inputs), customer)


def test_build_calculation_data_formats_figures(make_inputs):
    data = _data(make_inputs)
    c = data.calculations

    assert c.monthly_rate_per_location == "135.00"
    assert c.total_contract_value == "1620.00"
    assert c.commission_percentage == "15.0"
    assert c.initial_commission == "67.50"
    assert c.monthly_residual == "15.95"
    assert c.total_commission == "243.00"
    assert c.base_monthly_rate == "135.00"
    assert c.add_on_monthly_rate == "0.00"
    assert data.spot_type == 20
    assert data.customer_data.has_any is False


def test_calculation_data_wire_format(make_inputs):
    payload = _data(make_inputs, CustomerData(business_name="Acme")).model_dump(by_alias=True)

    assert payload["spotType"] == 20
    assert payload["addOns"]["peakTime"] == {"enabled": False, "locations": 1}
    assert payload["customerData"]["businessName"] == "Acme"
    assert payload["calculations"]["totalMonthlyValue"] == "135.00"
    assert payload["calculations"]["addOnMonthlyRate"] == "0.00"


def test_render_new_business_report(make_inputs):
    html = report.render_report_html(_data(make_inputs), generated_on=date(2026, 10, 17))

    assert "Generated on Saturday, October 17, 2026" in html
    assert "New Business" in html
    assert "20-second spot" in html
    assert "Initial Commission (Month 1)" in html
    assert "Monthly Residual" in html
    assert "$243.00" in html
    assert "Year 1" in html
    assert "Customer Information" not in html
    assert "Add-on Monthly Rate" not in html


def test_render_renewal_report(make_inputs):
    data = _data(
        make_inputs,
        is_renewal=True,
        renewal_year=4,
        add_ons={"screen_takeover": {"enabled": True, "locations": 1}},
    )
    html = report.render_report_html(data)

    assert "Year 4+ Renewal" in html
    assert "Monthly Commission" in html
    assert "Initial Commission" not in html
    assert "Screen Takeover (1 locations)" in html
    assert "Peak Time Scheduling" not in html
    assert "Add-on Monthly Rate" in html


def test_render_escapes_customer_fields(make_inputs):
    customer = CustomerData(business_name="<b>Joe's</b>", collected_amount="500")
    html = report.render_report_html(_data(make_inputs, customer))

    assert "Customer Information" in html
    assert "<b>Joe" not in html
    assert "&lt;b&gt;" in html
    assert "$500" in html
    assert "Date Proposal Signed" not in html


def test_dispatch_sends_through_resend(make_inputs, resend):
    sent, _ = resend
    result = asyncio.run(report.dispatch_report(" rep@example.com ", _data(make_inputs)))

    assert result == {"id": "email_123"}
    assert len(sent) == 1
    req = sent[0]
    assert req.headers["Authorization"] == "Bearer re_test"
    body = json.loads(req.content)
    assert body["to"] == ["rep@example.com"]
    assert body["from"] == report.REPORT_FROM_ADDRESS
    assert body["subject"] == report.REPORT_SUBJECT
    assert "Arrows Displays Commission Report" in body["html"]


def test_dispatch_rejects_bad_email(make_inputs, resend):
    sent, _ = resend
    result = asyncio.run(report.dispatch_report("not-an-email", _data(make_inputs)))

    assert result == {"error": "Valid email address is required"}
    assert sent == []


def test_dispatch_surfaces_provider_error(make_inputs, resend):
    _, state = resend
    state["status"] = 422
    state["body"] = {"message": "Invalid `to` field"}

    result = asyncio.run(report.dispatch_report("rep@example.com", _data(make_inputs)))
    assert result == {"error": "Invalid `to` field"}


def test_send_without_api_key(monkeypatch):
    monkeypatch.setattr(report, "RESEND_API_KEY", "")
    result = asyncio.run(report.send_report_email("rep@example.com", "<html></html>"))
    assert result == {"error": "Email service not configured"}


def test_send_transport_failure(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    monkeypatch.setattr(report, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(report, "_http_client", httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    try:
        result = asyncio.run(report.send_report_email("rep@example.com", "<html></html>"))
    finally:
        asyncio.run(report.close_http_client())
    assert result == {"error": "Failed to send commission report"}
