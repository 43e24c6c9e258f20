"""
report.py: Commission report email for the calculator.

Flow:
  - The calculator (or any other caller) formats a CommissionResult into a
    CalculationData payload: inputs echoed back, figures as 2-decimal strings,
    optional customer metadata.
  - The payload is rendered into a standalone HTML document (Jinja2,
    templates/report_email.html).
  - The document is sent through the Resend REST API. When RESEND_API_KEY is
    unset, sending is disabled and callers get an error dict back.

Helpers return plain dicts ({"id": ...} on success, {"error": ...} on
failure) rather than raising, so route handlers can map them straight onto
a response.
"""

import logging
import os
from datetime import date

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .payplan import CommissionResult
from .schemas import CalculationData, Calculations, CommissionIn, CustomerData
from .utils import campaign_year_label, fixed, report_date_label, to_float

logger = logging.getLogger("report")

# ── Resend config ──────────────────────────────────────────────────────────────
RESEND_API_KEY = os.environ.get("RESEND_API_KEY", "")
RESEND_API_URL = os.environ.get("RESEND_API_URL", "https://api.resend.com/emails").rstrip("/")
REPORT_FROM_ADDRESS = os.environ.get("REPORT_FROM_ADDRESS", "Arrows Displays <sales@arrowsdisplays.com>")
REPORT_SUBJECT = os.environ.get("REPORT_SUBJECT", "Arrows Displays Commission Calculation Report")

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)

# ── Shared HTTP client (module-level, keep-alive across sends) ──────────────────
_http_client: httpx.AsyncClient | None = None


def _get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = httpx.AsyncClient(
            timeout=10,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None


# ── Payload ────────────────────────────────────────────────────────────────────
def format_calculations(result: CommissionResult) -> Calculations:
    return Calculations(
        monthly_rate_per_location=fixed(result.monthly_rate_per_location),
        total_monthly_value=fixed(result.total_monthly_value),
        total_contract_value=fixed(result.total_contract_value),
        commission_percentage=fixed(result.commission_percentage, 1),
        initial_commission=fixed(result.initial_commission),
        monthly_residual=fixed(result.monthly_residual),
        total_commission=fixed(result.total_commission),
        base_monthly_rate=fixed(result.base_monthly_value),
        add_on_monthly_rate=fixed(result.add_on_monthly_value),
    )


def build_calculation_data(
    inputs: CommissionIn,
    result: CommissionResult,
    customer: CustomerData | None = None,
) -> CalculationData:
    """Echo the inputs with the formatted figures and optional customer info."""
    return CalculationData(
        **inputs.model_dump(),
        customer_data=customer or CustomerData(),
        calculations=format_calculations(result),
    )


# ── HTML ───────────────────────────────────────────────────────────────────────
def render_report_html(data: CalculationData, generated_on: date | None = None) -> str:
    c = data.calculations
    if data.is_renewal:
        campaign_type = f"Year {campaign_year_label(True, data.renewal_year)} Renewal"
    else:
        campaign_type = "New Business"
    return _env.get_template("report_email.html").render(
        data=data,
        c=c,
        generated_on=report_date_label(generated_on),
        campaign_type=campaign_type,
        year_label=campaign_year_label(data.is_renewal, data.renewal_year),
        show_add_on_rate=to_float(c.add_on_monthly_rate) > 0,
        show_initial=to_float(c.initial_commission) > 0,
        show_residual=to_float(c.monthly_residual) > 0,
    )


# ── Resend ─────────────────────────────────────────────────────────────────────
def _resend_headers() -> dict:
    return {"Authorization": f"Bearer {RESEND_API_KEY}", "Content-Type": "application/json"}


async def send_report_email(email: str, html: str) -> dict:
    if not RESEND_API_KEY:
        return {"error": "Email service not configured"}
    try:
        r = await _get_http_client().post(
            RESEND_API_URL,
            headers=_resend_headers(),
            json={
                "from": REPORT_FROM_ADDRESS,
                "to": [email],
                "subject": REPORT_SUBJECT,
                "html": html,
            },
        )
    except httpx.HTTPError as e:
        logger.warning(f"Resend request failed: {e}")
        return {"error": "Failed to send commission report"}
    try:
        data = r.json()
    except ValueError:
        data = {}
    if not isinstance(data, dict):
        data = {}
    if r.status_code not in (200, 201, 202):
        msg = data.get("message") or data.get("error") or "Failed to send commission report"
        logger.warning(f"Resend rejected report for {email}: {r.status_code} {msg}")
        return {"error": msg}
    return {"id": data.get("id")}


async def dispatch_report(email: str, data: CalculationData) -> dict:
    """Render and send one report. Returns {"id": ...} or {"error": ...}."""
    email = (email or "").strip()
    if not email or "@" not in email:
        return {"error": "Valid email address is required"}

    html = render_report_html(data)
    logger.info(f"Sending commission report to {email}")
    result = await send_report_email(email, html)
    if "error" not in result:
        logger.info(f"Commission report sent to {email} (id={result.get('id')})")
    return result
