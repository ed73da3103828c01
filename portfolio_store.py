"""
Local persistence for the holdings list: one JSON array in a file.
"""
import os
import json
import math
import logging

from portfolio import merge_holding

PORTFOLIO_PATH = os.environ.get("PORTFOLIO_PATH", "portfolio.json")


def _is_number(val):
    return isinstance(val, (int, float)) and not isinstance(val, bool) and math.isfinite(val)


def _valid(item):
    return (
        isinstance(item, dict)
        and isinstance(item.get("ticker"), str)
        and item["ticker"].strip() != ''
        and _is_number(item.get("quantity")) and item["quantity"] > 0
        and _is_number(item.get("price")) and item["price"] > 0
    )


class PortfolioStore:
    def __init__(self, path=None):
        self.path = path or PORTFOLIO_PATH

    def load(self):
        """Holdings from disk. Missing or corrupt content reads as empty."""
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"Ignoring unreadable portfolio file {self.path}: {e}")
            return []
        if not isinstance(data, list):
            logging.warning(f"Ignoring portfolio file {self.path}: expected a JSON array")
            return []
        # Tickers differing only in case fold into one weighted-average holding
        holdings = []
        for item in data:
            if _valid(item):
                holdings = merge_holding(holdings, item["ticker"], item["quantity"], item["price"])
        return holdings

    def save(self, holdings):
        with open(self.path, 'w') as f:
            json.dump([h.to_json() for h in holdings], f)
