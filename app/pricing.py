"""
Cost roll-ups and price/margin calculations.

Everything here is plain arithmetic over values that were already fetched
from the database, so none of these functions touch the session and none of
them raise for zero costs or zero yields.
"""
import math

# Share of the monthly fixed costs charged to each priced recipe.
# Flat rate, independent of product mix or sales volume.
FIXED_COSTS_ALLOCATION_RATE = 0.01

DEFAULT_PROFIT_MARGIN = 30.0

# Multipliers that turn an amount paid at a given frequency into a monthly amount
MONTHLY_FACTORS = {
    'daily': 30.0,
    'weekly': 4.0,
    'monthly': 1.0,
    'yearly': 1.0 / 12.0,
}

EDITING_MARGIN = 'margin'
EDITING_PRICE = 'price'


def parse_number(value, default=0.0):
    """
    Convert form input to a float.

    Empty strings, None, non-numeric text and NaN all become `default`
    (0 unless told otherwise), mirroring how an empty input box is treated.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace(',', '.')
        if not value:
            return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _unit_figures(total_cost, yield_amount, final_price):
    yield_amount = parse_number(yield_amount)
    if yield_amount <= 0:
        return None, None, None
    unit_cost = total_cost / yield_amount
    unit_price = final_price / yield_amount
    return unit_cost, unit_price, unit_price - unit_cost


def compute_from_margin(total_cost, yield_amount, margin_percent):
    """
    Price a batch from a target profit margin.

    Args:
        total_cost: Cost of one batch
        yield_amount: Units sold from that batch; unit figures are None when 0 or missing
        margin_percent: Profit over cost in percent. Negative values are allowed

    Returns:
        dict with final_price, unit_cost, unit_price and profit_per_unit
    """
    total_cost = parse_number(total_cost)
    margin_percent = parse_number(margin_percent)
    final_price = total_cost + total_cost * margin_percent / 100.0
    unit_cost, unit_price, profit_per_unit = _unit_figures(total_cost, yield_amount, final_price)
    return {
        'final_price': final_price,
        'unit_cost': unit_cost,
        'unit_price': unit_price,
        'profit_per_unit': profit_per_unit,
    }


def compute_from_price(total_cost, yield_amount, final_price):
    """
    Back-calculate the profit margin implied by a final price.

    A price below cost is reported as a 0% margin, and a zero cost always
    yields a 0% margin instead of dividing by zero.
    """
    total_cost = parse_number(total_cost)
    final_price = parse_number(final_price)
    if total_cost > 0:
        margin_percent = max((final_price - total_cost) / total_cost * 100.0, 0.0)
    else:
        margin_percent = 0.0
    unit_cost, unit_price, profit_per_unit = _unit_figures(total_cost, yield_amount, final_price)
    return {
        'margin_percent': margin_percent,
        'unit_cost': unit_cost,
        'unit_price': unit_price,
        'profit_per_unit': profit_per_unit,
    }


def compute_product_cost(recipe_lines, package_lines):
    """
    Sum the cost of a product from its recipe and package lines.

    recipe_lines items carry `cost_per_unit` and `quantity`, package_lines
    items carry `unit_cost` and `quantity`. Missing or malformed values count as 0.
    """
    recipes_cost = sum(
        parse_number(line.get('cost_per_unit')) * parse_number(line.get('quantity'))
        for line in recipe_lines or []
    )
    packages_cost = sum(
        parse_number(line.get('unit_cost')) * parse_number(line.get('quantity'))
        for line in package_lines or []
    )
    return recipes_cost + packages_cost


def compute_recipe_pricing(recipe_cost, labor_minutes, hourly_rate, packaging_cost,
                           fixed_costs_monthly_total, allocation_rate, profit_margin, yield_amount):
    """
    Full cost and price breakdown for one batch of a recipe.

    total_cost = recipe cost + labor + packaging + allocated share of fixed costs,
    and the final price applies the profit margin on top of that total.
    """
    recipe_cost = parse_number(recipe_cost)
    labor_cost = parse_number(labor_minutes) / 60.0 * parse_number(hourly_rate)
    packaging_cost = parse_number(packaging_cost)
    fixed_costs_share = parse_number(fixed_costs_monthly_total) * parse_number(allocation_rate)
    total_cost = recipe_cost + labor_cost + packaging_cost + fixed_costs_share

    priced = compute_from_margin(total_cost, yield_amount, profit_margin)
    return {
        'recipe_cost': recipe_cost,
        'labor_cost': labor_cost,
        'packaging_cost': packaging_cost,
        'fixed_costs_share': fixed_costs_share,
        'total_cost': total_cost,
        'profit_margin': parse_number(profit_margin),
        'suggested_price': priced['final_price'],
        'final_price': priced['final_price'],
        'unit_cost': priced['unit_cost'],
        'unit_price': priced['unit_price'],
        'profit_per_unit': priced['profit_per_unit'],
    }


def ingredient_cost_per_unit(package_cost, package_amount):
    """Cost of one g/ml/unit of an ingredient; 0 when the package amount is not positive"""
    package_amount = parse_number(package_amount)
    if package_amount <= 0:
        return 0.0
    return parse_number(package_cost) / package_amount


def recipe_totals(ingredient_lines, servings):
    """
    Roll up a recipe from (cost_per_unit, amount) pairs.

    Returns (total_cost, cost_per_serving). Servings below 1 are treated as 1.
    """
    total_cost = sum(parse_number(cost) * parse_number(amount) for cost, amount in ingredient_lines)
    servings = max(int(parse_number(servings, 1)), 1)
    return total_cost, total_cost / servings


def monthly_amount(amount, frequency):
    # Unknown frequencies are taken as already monthly
    return parse_number(amount) * MONTHLY_FACTORS.get(frequency, 1.0)


def total_monthly_fixed_costs(fixed_costs):
    """Sum (amount, frequency) pairs as a monthly total"""
    return sum(monthly_amount(amount, frequency) for amount, frequency in fixed_costs)


def order_totals(lines, discount=0.0, fees=0.0):
    """
    Totals of a sale from (quantity, unit_price, unit_cost) lines.

    The amount charged never goes below zero. Profit is taken against the
    product cost snapshots and the margin is profit over cost of goods.
    """
    discount = parse_number(discount)
    fees = parse_number(fees)
    subtotal = sum(parse_number(qty) * parse_number(price) for qty, price, _cost in lines)
    goods_cost = sum(parse_number(qty) * parse_number(cost) for qty, _price, cost in lines)

    estimated_profit = subtotal - goods_cost - discount
    return {
        'subtotal': subtotal,
        'total_amount': max(subtotal - discount + fees, 0.0),
        'estimated_profit': estimated_profit,
        'profit_margin': estimated_profit / goods_cost * 100.0 if goods_cost > 0 else 0.0,
    }


class PriceMarginSync:
    """
    Keeps the coupled margin and price fields of a pricing form consistent.

    Whichever field was edited last is authoritative (`last_edited` is either
    'margin' or 'price') and the other one is derived from it. Derived values
    are assigned directly and never flip the flag, so a recompute can not
    bounce back and forth between the two fields.
    """

    def __init__(self, total_cost=0.0, yield_amount=1, profit_margin=DEFAULT_PROFIT_MARGIN,
                 final_price=None, last_edited=EDITING_MARGIN):
        if last_edited not in (EDITING_MARGIN, EDITING_PRICE):
            last_edited = EDITING_MARGIN
        self.total_cost = parse_number(total_cost)
        self.yield_amount = parse_number(yield_amount)
        self.profit_margin = parse_number(profit_margin)
        self.final_price = parse_number(final_price)
        self.last_edited = last_edited
        self._recompute()

    def edit_margin(self, value):
        self.last_edited = EDITING_MARGIN
        self.profit_margin = parse_number(value)
        self._recompute()
        return self.snapshot()

    def edit_price(self, value):
        self.last_edited = EDITING_PRICE
        self.final_price = parse_number(value)
        self._recompute()
        return self.snapshot()

    def set_total_cost(self, value):
        """New cost basis (lines added or removed); the authoritative field is kept"""
        self.total_cost = parse_number(value)
        self._recompute()
        return self.snapshot()

    def _recompute(self):
        if self.last_edited == EDITING_PRICE:
            result = compute_from_price(self.total_cost, self.yield_amount, self.final_price)
            self.profit_margin = result['margin_percent']
        else:
            result = compute_from_margin(self.total_cost, self.yield_amount, self.profit_margin)
            self.final_price = result['final_price']
        self.unit_cost = result['unit_cost']
        self.unit_price = result['unit_price']
        self.profit_per_unit = result['profit_per_unit']

    def snapshot(self):
        return {
            'total_cost': self.total_cost,
            'yield_amount': self.yield_amount,
            'profit_margin': self.profit_margin,
            'final_price': self.final_price,
            'unit_cost': self.unit_cost,
            'unit_price': self.unit_price,
            'profit_per_unit': self.profit_per_unit,
            'last_edited': self.last_edited,
        }
