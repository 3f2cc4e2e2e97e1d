"""
Tests for app.pricing: the cost roll-ups and the price/margin calculator.

None of these need an application or a database.
"""

import pytest

from app.pricing import (
    DEFAULT_PROFIT_MARGIN,
    FIXED_COSTS_ALLOCATION_RATE,
    PriceMarginSync,
    compute_from_margin,
    compute_from_price,
    compute_product_cost,
    compute_recipe_pricing,
    ingredient_cost_per_unit,
    monthly_amount,
    order_totals,
    parse_number,
    recipe_totals,
    total_monthly_fixed_costs,
)


class TestParseNumber:

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", float("nan"), float("inf"), [], True])
    def test_malformed_input_is_zero(self, value):
        assert parse_number(value) == 0.0

    def test_accepts_comma_decimal(self):
        assert parse_number("12,5") == 12.5

    def test_numeric_strings_and_numbers(self):
        assert parse_number(" 3.25 ") == 3.25
        assert parse_number(7) == 7.0

    def test_custom_default(self):
        assert parse_number("", 1) == 1


class TestMarginToPrice:

    def test_scenario_cost_100_yield_10_margin_30(self):
        result = compute_from_margin(100, 10, 30)
        assert result['final_price'] == pytest.approx(130)
        assert result['unit_cost'] == pytest.approx(10)
        assert result['unit_price'] == pytest.approx(13)
        assert result['profit_per_unit'] == pytest.approx(3)

    def test_negative_margin_prices_below_cost(self):
        result = compute_from_margin(100, 1, -10)
        assert result['final_price'] == pytest.approx(90)
        assert result['profit_per_unit'] == pytest.approx(-10)

    @pytest.mark.parametrize("yield_amount", [0, None, "", -2])
    def test_no_unit_figures_without_yield(self, yield_amount):
        result = compute_from_margin(100, yield_amount, 30)
        assert result['final_price'] == pytest.approx(130)
        assert result['unit_cost'] is None
        assert result['unit_price'] is None
        assert result['profit_per_unit'] is None

    def test_final_price_grows_with_margin(self):
        prices = [compute_from_margin(42.5, 3, m)['final_price'] for m in (0, 10, 25, 50, 100, 250)]
        assert prices == sorted(prices)
        assert len(set(prices)) == len(prices)

    def test_malformed_margin_is_zero(self):
        assert compute_from_margin(80, 4, "abc")['final_price'] == pytest.approx(80)


class TestPriceToMargin:

    def test_scenario_cost_50_yield_5_price_75(self):
        result = compute_from_price(50, 5, 75)
        assert result['margin_percent'] == pytest.approx(50)
        assert result['unit_cost'] == pytest.approx(10)
        assert result['unit_price'] == pytest.approx(15)
        assert result['profit_per_unit'] == pytest.approx(5)

    @pytest.mark.parametrize("price", [0, 10, 99.9])
    def test_zero_cost_gives_zero_margin(self, price):
        assert compute_from_price(0, 3, price)['margin_percent'] == 0

    def test_price_below_cost_is_clamped_to_zero(self):
        assert compute_from_price(100, 1, 60)['margin_percent'] == 0

    @pytest.mark.parametrize("cost,yield_amount,margin", [
        (100, 10, 30),
        (12.34, 7, 0),
        (0.5, 1, 187.5),
        (999, 24, 12.5),
    ])
    def test_round_trip(self, cost, yield_amount, margin):
        price = compute_from_margin(cost, yield_amount, margin)['final_price']
        assert compute_from_price(cost, yield_amount, price)['margin_percent'] == pytest.approx(margin)

    @pytest.mark.parametrize("cost,yield_amount,price", [(50, 5, 75), (33.3, 3, 40), (10, 12, 10)])
    def test_unit_figures_multiply_back_to_batch(self, cost, yield_amount, price):
        result = compute_from_price(cost, yield_amount, price)
        assert result['unit_price'] * yield_amount == pytest.approx(price)
        assert result['unit_cost'] * yield_amount == pytest.approx(cost)


class TestCostRollups:

    def test_product_cost(self):
        total = compute_product_cost(
            [{'cost_per_unit': 2, 'quantity': 3}, {'cost_per_unit': 1.5, 'quantity': 2}],
            [{'unit_cost': 0.5, 'quantity': 1}]
        )
        assert total == pytest.approx(9.5)

    def test_product_cost_without_lines(self):
        assert compute_product_cost([], None) == 0

    def test_ingredient_cost_per_unit(self):
        assert ingredient_cost_per_unit(10, 1000) == pytest.approx(0.01)
        assert ingredient_cost_per_unit(10, 0) == 0

    def test_recipe_totals(self):
        total, per_serving = recipe_totals([(0.01, 500), (0.02, 100)], 4)
        assert total == pytest.approx(7)
        assert per_serving == pytest.approx(1.75)

    def test_recipe_totals_servings_floor(self):
        total, per_serving = recipe_totals([(1, 3)], 0)
        assert per_serving == total == 3


class TestFixedCosts:

    @pytest.mark.parametrize("frequency,expected", [
        ('daily', 300),
        ('weekly', 40),
        ('monthly', 10),
        ('yearly', 10 / 12),
    ])
    def test_monthly_amount(self, frequency, expected):
        assert monthly_amount(10, frequency) == pytest.approx(expected)

    def test_total_monthly(self):
        total = total_monthly_fixed_costs([(1200, 'yearly'), (50, 'weekly'), (300, 'monthly')])
        assert total == pytest.approx(100 + 200 + 300)


class TestRecipePricing:

    def test_breakdown(self):
        result = compute_recipe_pricing(
            recipe_cost=40,
            labor_minutes=90,
            hourly_rate=20,
            packaging_cost=5,
            fixed_costs_monthly_total=1000,
            allocation_rate=FIXED_COSTS_ALLOCATION_RATE,
            profit_margin=50,
            yield_amount=10,
        )
        assert result['labor_cost'] == pytest.approx(30)
        assert result['fixed_costs_share'] == pytest.approx(10)
        assert result['total_cost'] == pytest.approx(85)
        assert result['final_price'] == pytest.approx(127.5)
        assert result['suggested_price'] == result['final_price']
        assert result['unit_cost'] == pytest.approx(8.5)
        assert result['unit_price'] == pytest.approx(12.75)

    def test_missing_rate_means_no_labor_cost(self):
        result = compute_recipe_pricing(10, 60, None, 0, 0, FIXED_COSTS_ALLOCATION_RATE, 0, 1)
        assert result['labor_cost'] == 0
        assert result['total_cost'] == pytest.approx(10)


class TestOrderTotals:

    def test_totals_and_profit(self):
        totals = order_totals([(2, 15, 10), (1, 20, 12)], discount=5, fees=8)
        assert totals['subtotal'] == pytest.approx(50)
        assert totals['total_amount'] == pytest.approx(53)
        assert totals['estimated_profit'] == pytest.approx(50 - 32 - 5)
        assert totals['profit_margin'] == pytest.approx(13 / 32 * 100)

    def test_total_never_negative(self):
        assert order_totals([(1, 10, 4)], discount=50)['total_amount'] == 0

    def test_zero_cost_goods_margin(self):
        assert order_totals([(1, 10, 0)])['profit_margin'] == 0


class TestPriceMarginSync:

    def test_defaults_to_margin(self):
        sync = PriceMarginSync(total_cost=100, yield_amount=10)
        assert sync.last_edited == 'margin'
        assert sync.profit_margin == DEFAULT_PROFIT_MARGIN
        assert sync.final_price == pytest.approx(130)

    def test_editing_price_derives_margin(self):
        sync = PriceMarginSync(total_cost=50, yield_amount=5)
        snapshot = sync.edit_price(75)
        assert snapshot['last_edited'] == 'price'
        assert snapshot['profit_margin'] == pytest.approx(50)
        assert snapshot['unit_price'] == pytest.approx(15)

    def test_editing_margin_derives_price(self):
        sync = PriceMarginSync(total_cost=50, yield_amount=5, final_price=75, last_edited='price')
        snapshot = sync.edit_margin(20)
        assert snapshot['last_edited'] == 'margin'
        assert snapshot['final_price'] == pytest.approx(60)

    def test_cost_change_keeps_authoritative_price(self):
        sync = PriceMarginSync(total_cost=50, yield_amount=1)
        sync.edit_price(80)
        snapshot = sync.set_total_cost(40)
        assert snapshot['final_price'] == pytest.approx(80)
        assert snapshot['profit_margin'] == pytest.approx(100)

    def test_cost_change_keeps_authoritative_margin(self):
        sync = PriceMarginSync(total_cost=50, yield_amount=1, profit_margin=10)
        snapshot = sync.set_total_cost(200)
        assert snapshot['profit_margin'] == pytest.approx(10)
        assert snapshot['final_price'] == pytest.approx(220)

    def test_unknown_flag_falls_back_to_margin(self):
        sync = PriceMarginSync(total_cost=10, last_edited='bogus', profit_margin=100, final_price=1)
        assert sync.last_edited == 'margin'
        assert sync.final_price == pytest.approx(20)

    def test_yield_from_form_text_is_numeric(self):
        sync = PriceMarginSync(total_cost=30, yield_amount="3", profit_margin=0)
        snapshot = sync.snapshot()
        assert snapshot['yield_amount'] == 3.0
        assert snapshot['unit_cost'] == pytest.approx(10)

    def test_zero_cost_with_price_never_raises(self):
        sync = PriceMarginSync(total_cost=0, yield_amount=0)
        snapshot = sync.edit_price(25)
        assert snapshot['profit_margin'] == 0
        assert snapshot['unit_price'] is None
