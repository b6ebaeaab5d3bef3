"""
AWS Lambda handler for the Farm Equipment Finance & Lease API.

This is the production entry point for AWS Lambda deployments.
For local development, use main.py (Flask app) instead.
"""

import json
import logging
import re

from finance_engine import EngineConfig, FarmLedger, FinanceEngine
from finance_engine.inspection import get_inspection_tier_options
from finance_engine.output import HTTP_STATUS_CODES, http_status, to_money
from finance_engine.processor import (
    calculate_monthly_payment_from_dict,
    parse_amount,
    parse_farm_id,
    parse_lease_context,
)

config = EngineConfig.from_env()

# Configure logging
logger = logging.getLogger()
logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))

# Environment (dev, staging, prod)
ENVIRONMENT = config.environment

# Session state (reused across warm invocations)
ledger = FarmLedger()
engine = FinanceEngine(ledger=ledger, config=config)

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}

DEAL_PATH = re.compile(r"^/deals/(?P<deal_id>[^/]+)$")
DEAL_ACTION_PATH = re.compile(r"^/deals/(?P<deal_id>[^/]+)/(?P<action>payments|missed-payments|lease-quote|lease-actions|termination)$")
FARM_PATH = re.compile(r"^/farms/(?P<farm_id>\d+)/(?P<resource>deals|funds)$")


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events (REST API and HTTP API formats) for the deal
    routes, GET /health, GET /api and OPTIONS (CORS preflight).
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    try:
        return route(http_method, path, event)

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return _response(400, {"error": f"Invalid JSON: {str(e)}", "status": "failed"})

    except (ValueError, KeyError, TypeError) as e:
        # Request errors (missing fields, invalid types, etc.)
        logger.error(f"Validation error: {str(e)}")
        return _response(400, {"error": f"Validation error: {str(e)}", "status": getattr(e, "status", "validation_failed")})

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(500, {"error": "An unexpected error occurred during processing", "status": "failed"})


def route(http_method, path, event):
    """Dispatch to the handler for ``path``."""
    if path == "/health" and http_method == "GET":
        return handle_health()
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    elif path == "/deals/finance" and http_method == "POST":
        return _engine_response(engine.create_finance_deal(_parse_body(event)))
    elif path == "/deals/lease" and http_method == "POST":
        return _engine_response(engine.create_lease_deal(_parse_body(event)))
    elif path == "/calculate/monthly-payment" and http_method == "POST":
        result = calculate_monthly_payment_from_dict(_parse_body(event))
        return _response(HTTP_STATUS_CODES.get(result["status"], 500), result)
    elif path == "/inspection/tiers" and http_method == "GET":
        price = _query(event).get("price", "0")
        return _response(200, {"status": "success", "tiers": get_inspection_tier_options(price)})

    match = DEAL_ACTION_PATH.match(path)
    if match:
        return handle_deal_action(http_method, match.group("deal_id"), match.group("action"), event)

    match = DEAL_PATH.match(path)
    if match and http_method == "GET":
        return _engine_response(engine.get_deal(match.group("deal_id")))

    match = FARM_PATH.match(path)
    if match:
        return handle_farm(http_method, int(match.group("farm_id")), match.group("resource"), event)

    return _response(404, {"error": "Not found", "path": path})


def handle_health():
    """Health check endpoint."""
    return _response(200, {"status": "healthy", "environment": ENVIRONMENT})


def handle_api_info():
    """API information endpoint."""
    return _response(200, {
        "status": "ok",
        "message": "Farm Equipment Finance & Lease API",
        "version": "1.0",
        "environment": ENVIRONMENT,
        "runtime": "AWS Lambda",
        "endpoints": {
            "create_finance_deal": "/deals/finance [POST]",
            "create_lease_deal": "/deals/lease [POST]",
            "get_deal": "/deals/<deal_id> [GET]",
            "farm_deals": "/farms/<farm_id>/deals [GET]",
            "submit_payment": "/deals/<deal_id>/payments [POST]",
            "missed_payment": "/deals/<deal_id>/missed-payments [POST]",
            "lease_quote": "/deals/<deal_id>/lease-quote [GET]",
            "lease_action": "/deals/<deal_id>/lease-actions [POST]",
            "lease_termination": "/deals/<deal_id>/termination [POST]",
            "monthly_payment": "/calculate/monthly-payment [POST]",
            "inspection_tiers": "/inspection/tiers [GET]",
            "farm_funds": "/farms/<farm_id>/funds [GET, POST]",
            "health": "/health [GET]",
        },
    })


def handle_deal_action(http_method, deal_id, action, event):
    if action == "payments" and http_method == "POST":
        body = _parse_body(event)
        amount = parse_amount(body.get("amount"))
        logger.info(f"Payment on {deal_id}")
        return _engine_response(engine.submit_payment(deal_id, amount, farm_id=parse_farm_id(body.get("farm_id"))))
    if action == "missed-payments" and http_method == "POST":
        farm_id = parse_farm_id(_optional_body(event).get("farm_id"))
        return _engine_response(engine.record_missed_payment(deal_id, farm_id=farm_id))
    if action == "lease-quote" and http_method == "GET":
        query = _query(event)
        context_data = {}
        if "damage" in query and "wear" in query:
            context_data["condition"] = {"damage": query["damage"], "wear": query["wear"]}
        return _engine_response(engine.quote_lease(deal_id, parse_lease_context(context_data)))
    if action == "lease-actions" and http_method == "POST":
        body = _parse_body(event)
        logger.info(f"Resolving lease {deal_id}: {body.get('action')}")
        return _engine_response(engine.resolve_lease(
            deal_id, body.get("action"), parse_lease_context(body), farm_id=parse_farm_id(body.get("farm_id"))
        ))
    if action == "termination" and http_method == "POST":
        body = _optional_body(event)
        logger.info(f"Terminating lease {deal_id} early")
        return _engine_response(engine.terminate_lease(
            deal_id, parse_lease_context(body), farm_id=parse_farm_id(body.get("farm_id"))
        ))
    return _response(404, {"error": "Not found", "path": f"/deals/{deal_id}/{action}"})


def handle_farm(http_method, farm_id, resource, event):
    if resource == "deals" and http_method == "GET":
        return _engine_response(engine.deals_for_farm(farm_id))
    if resource == "funds":
        if http_method == "POST":
            amount = parse_amount(_parse_body(event).get("amount"))
            ledger.credit(farm_id, amount, reason="deposit")
        return _response(200, {
            "status": "success",
            "farm_id": farm_id,
            "balance": to_money(ledger.query_farm_balance(farm_id)),
        })
    return _response(404, {"error": "Not found", "path": f"/farms/{farm_id}/{resource}"})


def _parse_body(event):
    body = event.get("body", "")
    if isinstance(body, str):
        if not body:
            raise ValueError("No input data provided")
        # Handle base64 encoded body (API Gateway)
        if event.get("isBase64Encoded"):
            import base64

            body = base64.b64decode(body).decode("utf-8")
        return json.loads(body)
    if not body:
        raise ValueError("No input data provided")
    return body


def _optional_body(event):
    if not event.get("body"):
        return {}
    return _parse_body(event)


def _query(event):
    return event.get("queryStringParameters") or {}


def _engine_response(result):
    return _response(http_status(result), result.to_dict())


def _response(status_code, body):
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(body)}
