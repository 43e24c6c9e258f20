import logging
import os
import traceback
import urllib.parse
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError

from .payplan import ADD_ON_KEYS, CommissionEngine
from .report import build_calculation_data, close_http_client, dispatch_report
from .schemas import CommissionIn, CustomerData, ReportRequest
from .utils import campaign_year_label, clamp_add_on_locations, fixed, money, parse_count, plural


logger = logging.getLogger("main")

engine = CommissionEngine()

# Form/query field prefix for each add-on
ADD_ON_FIELDS = {"peak_time": "peakTime", "screen_takeover": "screenTakeover"}

GENERIC_EMAIL_ERROR = "Please try again or contact support."


# ─── App setup ───
@asynccontextmanager
async def lifespan(application: FastAPI):
    yield
    await close_http_client()

app = FastAPI(title="Display Commission Calculator", lifespan=lifespan)

app.add_middleware(GZipMiddleware, minimum_size=1000)

# The report endpoint is called cross-origin by the hosted calculator page
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

templates = Jinja2Templates(directory=os.path.join(os.path.dirname(__file__), "templates"))

templates.env.filters["money"] = money
templates.env.filters["fixed"] = fixed
templates.env.filters["plural"] = plural
templates.env.globals["year_label"] = campaign_year_label


@app.exception_handler(Exception)
async def _exc(request: Request, exc: Exception):
    logger.error(f"Unhandled exception at {request.url}: {traceback.format_exc()}")
    return HTMLResponse(
        """<!DOCTYPE html><html><head><title>Error</title>
        <style>body{font-family:system-ui,sans-serif;display:flex;align-items:center;justify-content:center;min-height:100vh;margin:0;background:#f8fafc}
        .box{text-align:center;padding:2rem;max-width:400px}h1{font-size:1.5rem;color:#0f172a;margin-bottom:.5rem}
        p{color:#64748b;font-size:.95rem}a{color:#6366f1;text-decoration:none}a:hover{text-decoration:underline}</style></head>
        <body><div class="box"><h1>Something went wrong</h1>
        <p>An unexpected error occurred. The issue has been logged.</p>
        <p style="margin-top:1.5rem"><a href="/">← Back to Calculator</a></p></div></body></html>""",
        status_code=500,
    )


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
    return response


# ─── Form helpers ───
def _flag(v) -> bool:
    return str(v or "").strip().lower() in ("1", "on", "true", "yes")


def _choice(v, allowed: tuple[int, ...], default: int) -> int:
    n = parse_count(v, default=default)
    return n if n in allowed else default


def read_inputs(params) -> tuple[CommissionIn, dict[str, str]]:
    """Build a CommissionIn from query/form params.

    Returns (inputs, warnings); warnings maps an add-on key to the message
    shown when its location count had to be clamped.
    """
    defaults = CommissionIn()
    locations = parse_count(params.get("locations"))
    warnings = {}
    add_ons = {}
    for key in ADD_ON_KEYS:
        prefix = ADD_ON_FIELDS[key]
        requested = parse_count(params.get(f"{prefix}Locations"))
        clamped, exceeded = clamp_add_on_locations(requested, locations)
        if exceeded:
            warnings[key] = f"Cannot exceed {plural(locations, 'location')}"
        add_ons[key] = {"enabled": _flag(params.get(f"{prefix}Enabled")), "locations": clamped}

    inputs = CommissionIn(
        spot_type=_choice(params.get("spotType"), (10, 20, 30), defaults.spot_type),
        locations=locations,
        contract_length=_choice(params.get("contractLength"), (6, 12), defaults.contract_length),
        has_referral=_flag(params.get("hasReferral")),
        is_renewal=_flag(params.get("isRenewal")),
        renewal_year=_choice(params.get("renewalYear"), (2, 3, 4), defaults.renewal_year),
        add_ons=add_ons,
    )
    return inputs, warnings


def read_customer(params) -> CustomerData:
    return CustomerData(
        business_name=(params.get("businessName") or "").strip(),
        date_proposal_signed=(params.get("dateProposalSigned") or "").strip(),
        collected_amount=(params.get("collectedAmount") or "").strip(),
    )


def input_params(inputs: CommissionIn) -> dict[str, str]:
    """Inverse of read_inputs: the query params that reproduce `inputs`."""
    params = {
        "spotType": str(inputs.spot_type),
        "locations": str(inputs.locations),
        "contractLength": str(inputs.contract_length),
        "renewalYear": str(inputs.renewal_year),
    }
    if inputs.has_referral:
        params["hasReferral"] = "on"
    if inputs.is_renewal:
        params["isRenewal"] = "on"
    for key in ADD_ON_KEYS:
        add_on = getattr(inputs.add_ons, key)
        prefix = ADD_ON_FIELDS[key]
        params[f"{prefix}Locations"] = str(add_on.locations)
        if add_on.enabled:
            params[f"{prefix}Enabled"] = "on"
    return params


def _page(request: Request, name: str, inputs: CommissionIn, **extra):
    params = input_params(inputs)
    ctx = {
        "request": request,
        "inputs": inputs,
        "result": engine.calc(inputs),
        "card": engine.rate_card(),
        "params": params,
        "query": urllib.parse.urlencode(params),
        "warnings": {},
        "customer": CustomerData(),
        "flash": None,
    }
    ctx.update(extra)
    return templates.TemplateResponse(request, name, ctx)


# ─── Calculator pages ───
@app.get("/", response_class=HTMLResponse)
async def calculator(request: Request):
    inputs, warnings = read_inputs(request.query_params)
    return _page(request, "calculator.html", inputs, warnings=warnings)


@app.get("/print", response_class=HTMLResponse)
async def print_view(request: Request):
    inputs, _ = read_inputs(request.query_params)
    return _page(request, "print.html", inputs, customer=read_customer(request.query_params))


@app.post("/report/email", response_class=HTMLResponse)
async def email_report(request: Request):
    form = await request.form()
    inputs, warnings = read_inputs(form)
    customer = read_customer(form)
    email = (form.get("email") or "").strip()

    if not email:
        flash = {"kind": "error", "title": "Email required", "text": "Please enter your email address."}
        return _page(request, "calculator.html", inputs, warnings=warnings, customer=customer, flash=flash)

    data = build_calculation_data(inputs, engine.calc(inputs), customer)
    result = await dispatch_report(email, data)
    if "error" in result:
        logger.warning(f"Commission report to {email} failed: {result['error']}")
        flash = {"kind": "error", "title": "Email failed to send", "text": GENERIC_EMAIL_ERROR}
    else:
        flash = {
            "kind": "success",
            "title": "Email sent successfully",
            "text": f"Your commission report has been sent to {email}",
        }
    return _page(request, "calculator.html", inputs, warnings=warnings, customer=customer, flash=flash)


# ─── JSON API ───
@app.post("/api/calculate")
async def api_calculate(inputs: CommissionIn):
    return JSONResponse(engine.calc(inputs).to_dict())


@app.get("/api/payplan")
async def api_payplan():
    return JSONResponse(engine.rate_card())


@app.post("/api/send-commission-report")
async def send_commission_report(request: Request):
    """Email-report service: {email, calculationData} -> HTML report via Resend."""
    try:
        body = await request.json()
        req = ReportRequest.model_validate(body)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Invalid report request: {e}")
        return JSONResponse({"error": "Invalid report request"}, status_code=400)

    result = await dispatch_report(req.email, req.calculation_data)
    if "error" in result:
        return JSONResponse({"error": result["error"]}, status_code=400)
    return JSONResponse({
        "success": True,
        "message": "Commission report sent successfully",
        "emailId": result.get("id"),
    })
