from flask import Flask, request, jsonify
from flask_cors import CORS
from finance_engine import EngineConfig, FarmLedger, FinanceEngine
from finance_engine.inspection import get_inspection_tier_options
from finance_engine.output import HTTP_STATUS_CODES, http_status, to_money
from finance_engine.processor import (
    calculate_monthly_payment_from_dict,
    parse_amount,
    parse_farm_id,
    parse_lease_context,
)
import os
import logging

config = EngineConfig.from_env()

# Configure logging
logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes (the game-side bridge calls from another origin)
CORS(app)

# Session state: one ledger and one engine per running server
ledger = FarmLedger()
engine = FinanceEngine(ledger=ledger, config=config)


def _respond(result):
    return jsonify(result.to_dict()), http_status(result)


def _run(operation, handler):
    """Run a route handler, mapping request errors to 400 and anything else to 500."""
    try:
        return handler()

    except ValueError as e:
        logger.error(f"Validation error in {operation}: {str(e)}")
        return jsonify({
            "error": str(e),
            "status": getattr(e, "status", "validation_failed")
        }), 400

    except Exception as e:
        logger.error(f"Processing error in {operation}: {str(e)}", exc_info=True)
        return jsonify({
            "error": "An unexpected error occurred during processing",
            "status": "failed"
        }), 500


def _json_body():
    body = request.get_json(force=True, silent=True)
    if not body:
        raise ValueError("No input data provided")
    return body


def _optional_body():
    return request.get_json(force=True, silent=True) or {}


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Farm Equipment Finance & Lease API",
        "version": "1.0",
        "environment": config.environment,
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
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy"}), 200


@app.route("/deals/finance", methods=["POST"])
def create_finance_deal():
    def handler():
        body = _json_body()
        logger.info(f"Financing {body.get('item_name', body.get('item_id', 'Unknown'))} for farm {body.get('farm_id')}")
        return _respond(engine.create_finance_deal(body))
    return _run("create_finance_deal", handler)


@app.route("/deals/lease", methods=["POST"])
def create_lease_deal():
    def handler():
        body = _json_body()
        logger.info(f"Leasing {body.get('item_name', body.get('item_id', 'Unknown'))} for farm {body.get('farm_id')}")
        return _respond(engine.create_lease_deal(body))
    return _run("create_lease_deal", handler)


@app.route("/deals/<deal_id>", methods=["GET"])
def get_deal(deal_id):
    return _run("get_deal", lambda: _respond(engine.get_deal(deal_id)))


@app.route("/farms/<int:farm_id>/deals", methods=["GET"])
def farm_deals(farm_id):
    return _run("farm_deals", lambda: _respond(engine.deals_for_farm(farm_id)))


@app.route("/deals/<deal_id>/payments", methods=["POST"])
def submit_payment(deal_id):
    def handler():
        body = _json_body()
        amount = parse_amount(body.get("amount"))
        return _respond(engine.submit_payment(deal_id, amount, farm_id=parse_farm_id(body.get("farm_id"))))
    return _run("submit_payment", handler)


@app.route("/deals/<deal_id>/missed-payments", methods=["POST"])
def missed_payment(deal_id):
    def handler():
        farm_id = parse_farm_id(_optional_body().get("farm_id"))
        return _respond(engine.record_missed_payment(deal_id, farm_id=farm_id))
    return _run("missed_payment", handler)


@app.route("/deals/<deal_id>/lease-quote", methods=["GET"])
def lease_quote(deal_id):
    def handler():
        context_data = {}
        if "damage" in request.args and "wear" in request.args:
            context_data["condition"] = {"damage": request.args["damage"], "wear": request.args["wear"]}
        return _respond(engine.quote_lease(deal_id, parse_lease_context(context_data)))
    return _run("lease_quote", handler)


@app.route("/deals/<deal_id>/lease-actions", methods=["POST"])
def lease_action(deal_id):
    def handler():
        body = _json_body()
        logger.info(f"Resolving lease {deal_id}: {body.get('action')}")
        return _respond(engine.resolve_lease(
            deal_id, body.get("action"), parse_lease_context(body), farm_id=parse_farm_id(body.get("farm_id"))
        ))
    return _run("lease_action", handler)


@app.route("/deals/<deal_id>/termination", methods=["POST"])
def lease_termination(deal_id):
    def handler():
        body = _optional_body()
        logger.info(f"Terminating lease {deal_id} early")
        return _respond(engine.terminate_lease(
            deal_id, parse_lease_context(body), farm_id=parse_farm_id(body.get("farm_id"))
        ))
    return _run("lease_termination", handler)


@app.route("/calculate/monthly-payment", methods=["POST"])
def monthly_payment():
    def handler():
        result = calculate_monthly_payment_from_dict(_json_body())
        return jsonify(result), HTTP_STATUS_CODES.get(result["status"], 500)
    return _run("monthly_payment", handler)


@app.route("/inspection/tiers", methods=["GET"])
def inspection_tiers():
    def handler():
        price = request.args.get("price", "0")
        return jsonify({"status": "success", "tiers": get_inspection_tier_options(price)}), 200
    return _run("inspection_tiers", handler)


@app.route("/farms/<int:farm_id>/funds", methods=["GET", "POST"])
def farm_funds(farm_id):
    def handler():
        if request.method == "POST":
            amount = parse_amount(_json_body().get("amount"))
            ledger.credit(farm_id, amount, reason="deposit")
        return jsonify({
            "status": "success",
            "farm_id": farm_id,
            "balance": to_money(ledger.query_farm_balance(farm_id))
        }), 200
    return _run("farm_funds", handler)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
