"""
Portfolio arithmetic: weighted-average merges, allocation percentages,
the equal-weight buy plan and buy/sell/hold suggestions.
"""
import math
from dataclasses import dataclass, field, asdict

PLAN_TARGET_COUNT = 10
RANK_CUTOFF = 20

BUY, SELL, HOLD = "buy", "sell", "hold"


@dataclass
class Holding:
    ticker: str
    quantity: float
    price: float

    @property
    def value(self):
        return self.quantity * self.price

    def to_json(self):
        return asdict(self)


def normalize_ticker(ticker):
    return str(ticker or '').strip().upper()


def merge_holding(holdings, ticker, quantity, price):
    """
    Add a buy to the portfolio. An existing ticker keeps one entry with the
    summed quantity at the weighted-average price. Invalid input is a no-op.
    """
    ticker = normalize_ticker(ticker)
    if not ticker or quantity <= 0 or price <= 0:
        return list(holdings)

    merged = []
    found = False
    for h in holdings:
        if h.ticker == ticker:
            qty = h.quantity + quantity
            avg = (h.quantity * h.price + quantity * price) / qty
            merged.append(Holding(ticker, qty, avg))
            found = True
        else:
            merged.append(h)
    if not found:
        merged.append(Holding(ticker, quantity, price))
    return merged


def remove_holding(holdings, ticker):
    ticker = normalize_ticker(ticker)
    return [h for h in holdings if h.ticker != ticker]


def total_value(holdings):
    return sum(h.value for h in holdings)


def percentages(holdings):
    """Fraction of total portfolio value per ticker; all 0 for an empty total."""
    total = total_value(holdings)
    if total <= 0:
        return {h.ticker: 0.0 for h in holdings}
    return {h.ticker: h.value / total for h in holdings}


# ── Equal-weight buy plan ──────────────────────────────────

@dataclass
class PlanItem:
    ticker: str
    price: float
    quantity: int

    @property
    def cost(self):
        return self.quantity * self.price

    def to_json(self):
        d = asdict(self)
        d["cost"] = self.cost
        return d


@dataclass
class BuyPlan:
    items: list = field(default_factory=list)
    leftover: float = 0.0

    def to_json(self):
        return {"items": [i.to_json() for i in self.items], "leftover": self.leftover}


def build_equal_weight_plan(amount, rows, target_count=PLAN_TARGET_COUNT):
    """
    Split amount into target_count equal slices over the top ranked rows
    (dicts with ticker and price) and buy whole shares of each. Whatever cash
    remains goes into extra shares of the first row only.
    """
    if amount is None or amount <= 0 or not rows:
        return BuyPlan()

    per_slice = amount / target_count
    items = []
    spent = 0.0
    for row in rows[:target_count]:
        price = row.get("price") or 0
        qty = math.floor(per_slice / price) if price > 0 else 0
        items.append(PlanItem(ticker=row["ticker"], price=price, quantity=qty))
        spent += qty * price

    leftover = amount - spent
    first = items[0]
    if first.price > 0:
        extra = math.floor(leftover / first.price)
        if extra > 0:
            first.quantity += extra
            leftover -= extra * first.price
    return BuyPlan(items=items, leftover=leftover)


def project_purchase(holdings, items):
    """
    Each planned item's share of the purchase (cart_pct) and the share its
    ticker would hold in the portfolio after buying (portfolio_pct), both as
    fractions. Either is 0 when its total is 0.
    """
    cart_total = sum(i.cost for i in items)
    combined_total = total_value(holdings) + cart_total
    existing = {}
    for h in holdings:
        existing[h.ticker] = existing.get(h.ticker, 0) + h.value

    out = []
    for i in items:
        cart_pct = i.cost / cart_total if cart_total else 0.0
        portfolio_pct = (existing.get(i.ticker, 0) + i.cost) / combined_total if combined_total else 0.0
        out.append({"ticker": i.ticker, "cart_pct": cart_pct, "portfolio_pct": portfolio_pct})
    return out


# ── Suggestions ────────────────────────────────────────────

def suggest_actions(holdings, ranks, top_rows, rank_cutoff=RANK_CUTOFF):
    """
    Holdings ranked better than rank_cutoff are held, the rest (including
    unranked ones) are sold. Top ranked tickers not yet owned are bought.
    """
    held = set()
    out = []
    for h in holdings:
        held.add(h.ticker)
        rank = ranks.get(h.ticker)
        action = HOLD if rank is not None and rank < rank_cutoff else SELL
        out.append({"ticker": h.ticker, "action": action, "final_rank": rank})
    for row in top_rows:
        if row["ticker"] not in held:
            out.append({"ticker": row["ticker"], "action": BUY, "final_rank": row.get("final_rank")})
    return out
