"""
Safe SQL fragments for the listing endpoints.

Identifiers (columns, sort keys) only ever come from the introspected schema
or a fixed whitelist. Every user-supplied value is a bound parameter.
"""
import math
import re
from dataclasses import dataclass, field
from typing import Optional

import db

MAX_PAGE_SIZE = 200
MAX_TICKERS = 500

# Column synonyms across snapshot exports
NAME_COLS = ("company_name", "nome_empresa")
SECTOR_COLS = ("sector", "setor")
MCAP_COLS = ("market_cap", "marketcap")

COMMON_NUMERIC_COLS = ["earning_yield", "roic_pct", "i10_score", "liquidity", "market_cap", "marketcap"]


# ── Schema introspection ───────────────────────────────────

class ColumnCache:
    """Columns per schema.table, looked up once and kept until clear()."""

    def __init__(self):
        self._cache = {}

    def get_columns(self, table, schema=None):
        schema = schema or db.DB_SCHEMA
        key = f"{schema}.{table}"
        if key in self._cache:
            return self._cache[key]
        if db.USE_POSTGRES:
            _, rows = db.db_execute(
                f"""SELECT column_name
                      FROM information_schema.columns
                     WHERE table_schema = {db.P} AND table_name = {db.P}""",
                (schema, table),
            )
        else:
            _, rows = db.db_execute(
                f"SELECT name AS column_name FROM pragma_table_info({db.P})", (table,)
            )
        cols = {r[0] for r in rows}
        self._cache[key] = cols
        return cols

    def clear(self):
        self._cache.clear()


def first_present(cols, *candidates):
    for c in candidates:
        if c in cols:
            return c
    return None


# ── Request parsing ────────────────────────────────────────

@dataclass
class QueryFilter:
    q: Optional[str] = None
    sector: Optional[str] = None
    min_liquidity: Optional[float] = None
    min_market_cap: Optional[float] = None
    tickers: list = field(default_factory=list)


@dataclass
class SortSpec:
    column: str
    descending: bool = False


@dataclass
class Page:
    page: int
    page_size: int

    @property
    def offset(self):
        return (self.page - 1) * self.page_size


def parse_int(raw):
    """Leading integer of raw, or None. '12abc' -> 12, 'abc' -> None."""
    if raw is None:
        return None
    match = re.match(r'^\s*([+-]?\d+)', str(raw))
    return int(match.group(1)) if match else None


def parse_float(raw):
    if raw is None or str(raw).strip() == '':
        return None
    try:
        val = float(raw)
    except ValueError:
        return None
    if math.isnan(val) or math.isinf(val):
        return None
    return val


def _text(args, name):
    val = (args.get(name) or '').strip()
    return val or None


def normalize_tickers(raw, limit=MAX_TICKERS):
    """Split on whitespace/comma/semicolon, uppercase, dedupe in order, cap."""
    tickers = []
    seen = set()
    for token in re.split(r'[\s,;]+', str(raw or '')):
        t = token.strip().upper()
        if t and t not in seen:
            seen.add(t)
            tickers.append(t)
            if len(tickers) >= limit:
                break
    return tickers


def parse_filter(args):
    tickers = args.get("tickers")
    return QueryFilter(
        q=_text(args, "q"),
        sector=_text(args, "sector"),
        min_liquidity=parse_float(args.get("min_liquidity")),
        min_market_cap=parse_float(args.get("min_mcap")),
        tickers=normalize_tickers(tickers) if tickers else [],
    )


def parse_sort(raw):
    raw = (raw or '').strip()
    if not raw:
        return None
    desc = raw.startswith("-")
    col = raw[1:] if desc else raw
    if not col:
        return None
    return SortSpec(column=col, descending=desc)


def default_page_size(raw_env):
    size = parse_int(raw_env) or 30
    return min(max(1, size), MAX_PAGE_SIZE)


def get_paging(args, default_size=30):
    """page >= 1 and page_size in [1, 200]. Unparseable input uses the defaults."""
    page = parse_int(args.get("page"))
    page = max(1, page if page is not None else 1)
    size = parse_int(args.get("pageSize"))
    if size is None:
        size = default_size
    size = min(max(1, size), MAX_PAGE_SIZE)
    return Page(page=page, page_size=size)


# ── SQL fragments ──────────────────────────────────────────

def _qual(alias, col):
    return f'{alias}."{col}"' if alias else f'"{col}"'


def _find(sources, *candidates):
    for alias, cols in sources:
        col = first_present(cols, *candidates)
        if col:
            return _qual(alias, col)
    return None


def build_filters(flt, cols, alias="", joined=()):
    """
    WHERE clause and bound values for flt.

    A predicate is only emitted when its column exists in (alias, cols) or,
    failing that, in one of the joined (alias, cols) sources.
    """
    sources = [(alias, cols)] + list(joined)
    where = []
    values = []
    P = db.P

    if flt.q:
        ticker = _find(sources, "ticker")
        name = _find(sources, *NAME_COLS)
        pattern = f"%{flt.q}%"
        if ticker and name:
            values.extend([pattern, pattern])
            where.append(f"({ticker} {db.LIKE} {P} OR {name} {db.LIKE} {P})")
        elif ticker:
            values.append(pattern)
            where.append(f"{ticker} {db.LIKE} {P}")

    if flt.sector:
        sector = _find(sources, *SECTOR_COLS)
        if sector:
            values.append(flt.sector)
            where.append(f"{sector} = {P}")

    if flt.min_liquidity is not None:
        liquidity = _find(sources, "liquidity")
        if liquidity:
            values.append(flt.min_liquidity)
            where.append(f"{liquidity} >= {P}")

    if flt.min_market_cap is not None:
        mcap = _find(sources, *MCAP_COLS)
        if mcap:
            values.append(flt.min_market_cap)
            where.append(f"{mcap} >= {P}")

    if flt.tickers:
        ticker = _find(sources, "ticker")
        if ticker:
            values.extend(flt.tickers)
            where.append(f"{ticker} IN ({','.join([P] * len(flt.tickers))})")

    where_sql = f"WHERE {' AND '.join(where)}" if where else ""
    return where_sql, values


def build_order_by(sort, allowed, alias="", default="ticker", physical=None):
    """ORDER BY for a whitelisted column. Anything else sorts by default ASC."""
    physical = physical or {}
    if sort is None or sort.column not in allowed:
        col, direction = default, "ASC"
    else:
        col, direction = sort.column, "DESC" if sort.descending else "ASC"
    return f"ORDER BY {_qual(alias, physical.get(col, col))} {direction} NULLS LAST"


def common_numeric_cols(cols):
    return [c for c in COMMON_NUMERIC_COLS if c in cols]


def allowed_sort_cols(cols):
    return ["ticker"] + common_numeric_cols(cols)


def select_snapshot_columns(cols, alias="l"):
    """Select list producing the StockSnapshot shape from whatever columns exist."""
    def pick(out, *candidates):
        col = first_present(cols, *candidates)
        if col is None:
            return f"NULL AS {out}"
        if col == out:
            return _qual(alias, col)
        return f"{_qual(alias, col)} AS {out}"

    return ", ".join([
        _qual(alias, "ticker"),
        pick("company_name", *NAME_COLS),
        pick("sector", *SECTOR_COLS),
        pick("earning_yield", "earning_yield"),
        pick("roic_pct", "roic_pct"),
        pick("i10_score", "i10_score"),
        pick("liquidity", "liquidity"),
        pick("market_cap", *MCAP_COLS),
    ])
