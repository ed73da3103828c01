"""
Magic Formula Ranking Dashboard -- Flask Backend
Supports Postgres (DATABASE_URL) and SQLite (local dev).
"""
import os
import logging
from flask import Flask, jsonify, request
from flask_cors import CORS

from db import T_LATEST, close_db, check_config
from query_builder import (
    ColumnCache, parse_filter, parse_sort, parse_float, get_paging, default_page_size,
)
from ranking import (
    list_checklist, list_stocks, get_ranks_by_tickers, top_ranked,
    get_ticker, update_ticker, sample_rows,
)
from portfolio import (
    merge_holding, remove_holding, total_value, percentages,
    build_equal_weight_plan, project_purchase, suggest_actions, normalize_ticker,
)
from portfolio_store import PortfolioStore

app = Flask(__name__)
CORS(app)
app.teardown_appcontext(close_db)

PAGE_SIZE = default_page_size(os.environ.get("PAGE_SIZE", "30"))

# One column cache for the process; restart to pick up schema changes.
COLUMN_CACHE = ColumnCache()
portfolio_store = PortfolioStore()


def _error(message, status):
    return jsonify({"ok": False, "error": message}), status


@app.errorhandler(405)
def method_not_allowed(e):
    resp = jsonify({"ok": False, "error": "Method not allowed"})
    resp.status_code = 405
    resp.headers["Allow"] = ",".join(sorted(e.valid_methods or []))
    return resp


# ── Ranking ────────────────────────────────────────────────

def _listing(fetch):
    page = get_paging(request.args, PAGE_SIZE)
    flt = parse_filter(request.args)
    sort = parse_sort(request.args.get("sort"))
    rows, total = fetch(COLUMN_CACHE, flt, sort, page)
    return jsonify({
        "ok": True,
        "page": page.page,
        "pageSize": page.page_size,
        "total": total,
        "rows": [r.to_json() for r in rows],
    })


@app.route("/api/checklist")
def api_checklist():
    """
    Ranked stocks.
    Query params:
      - q: ticker / company name substring
      - sector, min_liquidity, min_mcap
      - sort: column (default final_rank); "-" prefix for DESC, e.g. -earning_yield
      - page, pageSize (default 1, PAGE_SIZE)
    """
    try:
        return _listing(list_checklist)
    except Exception as e:
        logging.error(f"checklist error: {e}")
        return _error(str(e), 500)


@app.route("/api/stocks")
def api_stocks():
    try:
        return _listing(list_stocks)
    except Exception as e:
        logging.error(f"stocks error: {e}")
        return _error(str(e), 500)


@app.route("/api/ranks")
def api_ranks():
    raw = (request.args.get("tickers") or "").strip()
    if not raw:
        return _error("tickers is required (CSV)", 400)
    try:
        return jsonify({"ok": True, "rows": get_ranks_by_tickers(raw)})
    except Exception as e:
        logging.error(f"ranks error: {e}")
        return _error(str(e), 500)


@app.route("/api/buy")
def api_buy():
    try:
        return jsonify({"ok": True, "rows": top_ranked(COLUMN_CACHE, 10)})
    except Exception as e:
        logging.error(f"buy error: {e}")
        return _error(str(e), 500)


def _ticker_response(ticker):
    detail = get_ticker(COLUMN_CACHE, ticker)
    if detail is None:
        return _error("ticker not found", 404)
    return jsonify({"ok": True, "data": detail.to_json()})


@app.route("/api/ticker", methods=["GET"])
def api_ticker_get():
    ticker = normalize_ticker(request.args.get("ticker"))
    if not ticker:
        return _error("ticker is required", 400)
    try:
        return _ticker_response(ticker)
    except Exception as e:
        logging.error(f"ticker GET error: {e}")
        return _error(str(e), 500)


@app.route("/api/ticker", methods=["PATCH"])
def api_ticker_patch():
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return _error("JSON object body required", 400)
    ticker = normalize_ticker(body.get("ticker"))
    if not ticker:
        return _error("ticker is required", 400)
    try:
        update_ticker(ticker, body.get("in_checklist"), body.get("notes"))
        return _ticker_response(ticker)
    except Exception as e:
        logging.error(f"ticker PATCH error: {e}")
        return _error(str(e), 500)


@app.route("/api/db-test")
def api_db_test():
    """Connection check: first raw rows of the snapshot table."""
    try:
        return jsonify({"ok": True, "table": T_LATEST, "sample": sample_rows(5)})
    except Exception as e:
        logging.error(f"DB test error: {e}")
        return _error(str(e), 500)


# ── Portfolio ──────────────────────────────────────────────
# Holdings live in a local JSON file, never in the database.

def _body_number(val):
    # JSON true would otherwise parse as 1.0
    if isinstance(val, bool):
        return None
    return parse_float(val)


def _portfolio_response(holdings):
    return jsonify({
        "ok": True,
        "holdings": [h.to_json() for h in holdings],
        "total_value": total_value(holdings),
        "percentages": percentages(holdings),
    })


@app.route("/api/portfolio", methods=["GET"])
def api_portfolio_get():
    return _portfolio_response(portfolio_store.load())


@app.route("/api/portfolio", methods=["POST"])
def api_portfolio_add():
    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return _error("JSON object body required", 400)
    ticker = normalize_ticker(body.get("ticker"))
    quantity = _body_number(body.get("quantity"))
    price = _body_number(body.get("price"))
    if not ticker:
        return _error("ticker is required", 400)
    if quantity is None or quantity <= 0 or price is None or price <= 0:
        return _error("quantity and price must be positive numbers", 400)

    holdings = merge_holding(portfolio_store.load(), ticker, quantity, price)
    portfolio_store.save(holdings)
    return _portfolio_response(holdings)


@app.route("/api/portfolio", methods=["DELETE"])
def api_portfolio_remove():
    ticker = normalize_ticker(request.args.get("ticker"))
    if not ticker:
        return _error("ticker is required", 400)
    holdings = remove_holding(portfolio_store.load(), ticker)
    portfolio_store.save(holdings)
    return _portfolio_response(holdings)


@app.route("/api/plan")
def api_plan():
    """Equal-weight buy plan over the top 10 ranked tickers for ?amount=."""
    amount = parse_float(request.args.get("amount"))
    if amount is None:
        return _error("amount is required", 400)
    try:
        rows = top_ranked(COLUMN_CACHE, 10) if amount > 0 else []
    except Exception as e:
        logging.error(f"plan error: {e}")
        return _error(str(e), 500)
    plan = build_equal_weight_plan(amount, rows)
    projection = project_purchase(portfolio_store.load(), plan.items)
    return jsonify({"ok": True, "amount": amount, **plan.to_json(), "projection": projection})


@app.route("/api/suggestions")
def api_suggestions():
    """Buy/sell/hold for the local portfolio against the current ranking."""
    holdings = portfolio_store.load()
    try:
        ranks = {}
        if holdings:
            rows = get_ranks_by_tickers(",".join(h.ticker for h in holdings))
            ranks = {r["ticker"]: r["final_rank"] for r in rows}
        top = top_ranked(COLUMN_CACHE, 10)
    except Exception as e:
        logging.error(f"suggestions error: {e}")
        return _error(str(e), 500)
    return jsonify({"ok": True, "rows": suggest_actions(holdings, ranks, top)})


# ── Entry point ────────────────────────────────────────────

if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    check_config()
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    app.run(host="0.0.0.0", port=port, debug=debug)
