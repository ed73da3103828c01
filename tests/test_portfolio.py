"""Tests for portfolio arithmetic and the local holdings file."""
import json

import pytest

from portfolio import (
    Holding, merge_holding, remove_holding, total_value, percentages,
    PlanItem, build_equal_weight_plan, project_purchase, suggest_actions, BUY, SELL, HOLD,
)
from portfolio_store import PortfolioStore

PRICES = [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]


def top_rows(prices=PRICES):
    return [{"ticker": f"T{i}", "price": p, "final_rank": i + 1} for i, p in enumerate(prices)]


class TestMerge:

    def test_weighted_average(self):
        holdings = merge_holding([], "itsa4", 10, 10)
        holdings = merge_holding(holdings, "ITSA4", 10, 20)
        assert holdings == [Holding("ITSA4", 20, 15.0)]

    def test_order_of_buys_does_not_matter(self):
        a = merge_holding(merge_holding([], "X", 3, 12.0), "X", 7, 4.0)
        b = merge_holding(merge_holding([], "X", 7, 4.0), "X", 3, 12.0)
        assert a[0].quantity == b[0].quantity == 10
        assert a[0].price == pytest.approx(b[0].price)
        assert a[0].price == pytest.approx(6.4)

    @pytest.mark.parametrize("ticker,qty,price", [
        ("", 1, 1), ("  ", 1, 1), ("X", 0, 1), ("X", -1, 1), ("X", 1, 0),
    ])
    def test_invalid_input_is_noop(self, ticker, qty, price):
        start = [Holding("A", 1, 1)]
        assert merge_holding(start, ticker, qty, price) == start

    def test_does_not_mutate_input(self):
        start = [Holding("A", 1, 10)]
        merge_holding(start, "A", 1, 20)
        assert start == [Holding("A", 1, 10)]

    def test_remove(self):
        holdings = [Holding("A", 1, 1), Holding("B", 2, 2)]
        assert remove_holding(holdings, "a") == [Holding("B", 2, 2)]
        assert remove_holding(holdings, "ZZZ") == holdings


class TestAllocation:

    def test_percentages_sum_to_one(self):
        holdings = [Holding("A", 1, 30), Holding("B", 2, 35)]
        pct = percentages(holdings)
        assert total_value(holdings) == 100
        assert pct == {"A": pytest.approx(0.3), "B": pytest.approx(0.7)}
        assert sum(pct.values()) == pytest.approx(1.0)

    def test_empty(self):
        assert total_value([]) == 0
        assert percentages([]) == {}


class TestEqualWeightPlan:

    def test_leftover_goes_to_first(self):
        plan = build_equal_weight_plan(1000, top_rows())
        assert [i.quantity for i in plan.items] == [23, 5, 3, 2, 2, 1, 1, 1, 1, 1]
        assert plan.leftover == pytest.approx(0)

    def test_costs_never_exceed_amount(self):
        plan = build_equal_weight_plan(777, top_rows())
        spent = sum(i.cost for i in plan.items)
        assert spent <= 777
        assert plan.leftover == pytest.approx(777 - spent)
        assert 0 <= plan.leftover < plan.items[0].price

    def test_only_first_ten_rows(self):
        plan = build_equal_weight_plan(1000, top_rows(PRICES + [5, 5]))
        assert len(plan.items) == 10

    def test_fewer_rows_still_slices_by_ten(self):
        plan = build_equal_weight_plan(100, top_rows([10, 10]))
        # slices of 10 each buy one share, then 80 of leftover go to the first
        assert [i.quantity for i in plan.items] == [9, 1]
        assert plan.leftover == pytest.approx(0)

    def test_missing_price_buys_nothing(self):
        rows = top_rows([10, None, 0])
        plan = build_equal_weight_plan(300, rows)
        assert [i.quantity for i in plan.items] == [30, 0, 0]

    def test_first_price_zero_keeps_leftover(self):
        plan = build_equal_weight_plan(100, top_rows([0, 10]))
        assert [i.quantity for i in plan.items] == [0, 1]
        assert plan.leftover == pytest.approx(90)

    @pytest.mark.parametrize("amount", [0, -5, None])
    def test_non_positive_amount(self, amount):
        plan = build_equal_weight_plan(amount, top_rows())
        assert plan.to_json() == {"items": [], "leftover": 0.0}

    def test_no_rows(self):
        assert build_equal_weight_plan(1000, []).items == []


class TestPurchaseProjection:

    def test_cart_and_portfolio_shares(self):
        holdings = [Holding("A", 10, 10)]
        items = [PlanItem("A", 10, 5), PlanItem("B", 25, 2)]
        assert project_purchase(holdings, items) == [
            {"ticker": "A", "cart_pct": pytest.approx(0.5), "portfolio_pct": pytest.approx(0.75)},
            {"ticker": "B", "cart_pct": pytest.approx(0.5), "portfolio_pct": pytest.approx(0.25)},
        ]

    def test_empty_portfolio_matches_cart(self):
        rows = project_purchase([], build_equal_weight_plan(1000, top_rows()).items)
        for row in rows:
            assert row["portfolio_pct"] == pytest.approx(row["cart_pct"])
        assert sum(r["cart_pct"] for r in rows) == pytest.approx(1.0)

    def test_zero_totals(self):
        assert project_purchase([], [PlanItem("A", 0, 0)]) == [
            {"ticker": "A", "cart_pct": 0.0, "portfolio_pct": 0.0},
        ]
        assert project_purchase([Holding("A", 1, 1)], []) == []


class TestSuggestions:

    def test_actions(self):
        holdings = [Holding("T0", 1, 1), Holding("OLD", 1, 1), Holding("GONE", 1, 1)]
        ranks = {"T0": 1, "OLD": 20, "GONE": None}
        rows = suggest_actions(holdings, ranks, top_rows()[:3])
        assert rows == [
            {"ticker": "T0", "action": HOLD, "final_rank": 1},
            {"ticker": "OLD", "action": SELL, "final_rank": 20},
            {"ticker": "GONE", "action": SELL, "final_rank": None},
            {"ticker": "T1", "action": BUY, "final_rank": 2},
            {"ticker": "T2", "action": BUY, "final_rank": 3},
        ]

    def test_rank_just_under_cutoff_is_held(self):
        rows = suggest_actions([Holding("A", 1, 1)], {"A": 19}, [])
        assert rows[0]["action"] == HOLD


class TestPortfolioStore:

    def test_missing_file(self, tmp_path):
        assert PortfolioStore(str(tmp_path / "none.json")).load() == []

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        assert PortfolioStore(str(path)).load() == []

    def test_not_an_array(self, tmp_path):
        path = tmp_path / "obj.json"
        path.write_text(json.dumps({"ticker": "A", "quantity": 1, "price": 1}))
        assert PortfolioStore(str(path)).load() == []

    def test_invalid_entries_are_dropped(self, tmp_path):
        path = tmp_path / "mixed.json"
        path.write_text(json.dumps([
            {"ticker": " itsa4 ", "quantity": 2, "price": 10.5},
            {"ticker": "", "quantity": 1, "price": 1},
            {"ticker": "A", "quantity": "1", "price": 1},
            {"ticker": "B", "quantity": 1, "price": 0},
            {"ticker": "C", "quantity": True, "price": 1},
            "PETR4",
        ]))
        assert PortfolioStore(str(path)).load() == [Holding("ITSA4", 2, 10.5)]

    def test_round_trip(self, tmp_path):
        store = PortfolioStore(str(tmp_path / "p.json"))
        holdings = [Holding("A", 1, 2.5), Holding("B", 3, 4)]
        store.save(holdings)
        assert store.load() == holdings
        store.save(store.load())
        assert store.load() == holdings

    def test_case_duplicates_fold_into_one_holding(self, tmp_path):
        path = tmp_path / "dupes.json"
        path.write_text(json.dumps([
            {"ticker": "petr4", "quantity": 10, "price": 10},
            {"ticker": "PETR4", "quantity": 10, "price": 20},
        ]))
        holdings = PortfolioStore(str(path)).load()
        assert holdings == [Holding("PETR4", 20, 15.0)]

        holdings = merge_holding(holdings, "PETR4", 10, 30)
        assert holdings == [Holding("PETR4", 30, 20.0)]
        assert percentages(holdings) == {"PETR4": 1.0}

    def test_non_finite_numbers_are_dropped(self, tmp_path):
        path = tmp_path / "inf.json"
        path.write_text(
            '[{"ticker": "A", "quantity": Infinity, "price": 1},'
            ' {"ticker": "B", "quantity": 1, "price": NaN},'
            ' {"ticker": "C", "quantity": 1, "price": 2}]'
        )
        holdings = PortfolioStore(str(path)).load()
        assert holdings == [Holding("C", 1, 2)]
        assert total_value(holdings) == 2
