from flask import Blueprint, jsonify
from flask_babel import gettext as _
from ..models import db, ProductPricing, Recipe, ValidationError
from ..pricing import compute_recipe_pricing, parse_number, FIXED_COSTS_ALLOCATION_RATE
from .utils import log_audit, get_payload, require_fields, positive_number, get_hourly_rate, get_monthly_fixed_costs

pricing_blueprint = Blueprint('pricing', __name__)


def read_pricing_inputs(data):
    """Validate the pricing form and return (recipe, inputs dict)"""
    require_fields(data, 'recipe_id', 'yield_amount')
    recipe = Recipe.query.get(int(parse_number(data['recipe_id'])))
    if not recipe:
        raise ValidationError(_('Recipe not found'))

    raw_yield = parse_number(data['yield_amount'])
    if raw_yield != int(raw_yield):
        raise ValidationError(_('Yield must be a whole number of units'))
    yield_amount = int(raw_yield)
    if yield_amount < 1:
        raise ValidationError(_('Yield must be at least 1 unit'))

    inputs = {
        'labor_minutes': positive_number(data, 'labor_minutes', allow_zero=True),
        'packaging_cost': positive_number(data, 'packaging_cost', allow_zero=True),
        'profit_margin': parse_number(data.get('profit_margin')),
        'yield_amount': yield_amount,
    }
    return recipe, inputs


def price_recipe(recipe, inputs):
    return compute_recipe_pricing(
        recipe_cost=recipe.total_cost,
        labor_minutes=inputs['labor_minutes'],
        hourly_rate=get_hourly_rate(),
        packaging_cost=inputs['packaging_cost'],
        fixed_costs_monthly_total=get_monthly_fixed_costs(),
        allocation_rate=FIXED_COSTS_ALLOCATION_RATE,
        profit_margin=inputs['profit_margin'],
        yield_amount=inputs['yield_amount']
    )


def store_pricing(pricing, recipe, inputs, breakdown, data):
    pricing.recipe = recipe
    pricing.labor_minutes = inputs['labor_minutes']
    pricing.packaging_cost = inputs['packaging_cost']
    pricing.profit_margin = inputs['profit_margin']
    pricing.yield_amount = inputs['yield_amount']
    pricing.category = data.get('category') or None
    pricing.notes = data.get('notes') or None
    for field in ('recipe_cost', 'labor_cost', 'fixed_costs_share', 'total_cost',
                  'suggested_price', 'final_price', 'unit_cost', 'unit_price'):
        setattr(pricing, field, breakdown[field])
    return pricing


# ----------------------------
# Product Pricing
# ----------------------------
@pricing_blueprint.route('/api/pricing', methods=['GET'])
def pricing_list():
    all_pricing = ProductPricing.query.order_by(ProductPricing.created_at.desc()).all()
    return jsonify({'pricing': [p.to_dict() for p in all_pricing]})


@pricing_blueprint.route('/api/pricing/<int:pricing_id>', methods=['GET'])
def get_pricing(pricing_id):
    pricing = ProductPricing.query.get_or_404(pricing_id)
    return jsonify(pricing.to_dict())


@pricing_blueprint.route('/api/pricing/preview', methods=['POST'])
def preview_pricing():
    """Breakdown for the pricing form as the user types; nothing is stored"""
    data = get_payload()
    try:
        recipe, inputs = read_pricing_inputs(data)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    return jsonify({'success': True, 'pricing': price_recipe(recipe, inputs)})


@pricing_blueprint.route('/api/pricing', methods=['POST'])
def add_pricing():
    data = get_payload()
    try:
        recipe, inputs = read_pricing_inputs(data)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    breakdown = price_recipe(recipe, inputs)
    pricing = store_pricing(ProductPricing(), recipe, inputs, breakdown, data)
    db.session.add(pricing)
    db.session.flush()
    log_audit("CREATE", "ProductPricing", pricing.id,
              f"Priced {recipe.name}: total {breakdown['total_cost']:.2f}, final {breakdown['final_price']:.2f}")
    db.session.commit()
    return jsonify({'success': True, 'pricing': pricing.to_dict()}), 201


@pricing_blueprint.route('/api/pricing/<int:pricing_id>', methods=['PUT', 'POST'])
def edit_pricing(pricing_id):
    pricing = ProductPricing.query.get_or_404(pricing_id)
    data = get_payload()
    try:
        recipe, inputs = read_pricing_inputs(data)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    breakdown = price_recipe(recipe, inputs)
    store_pricing(pricing, recipe, inputs, breakdown, data)
    log_audit("UPDATE", "ProductPricing", pricing.id,
              f"Repriced {recipe.name}: total {breakdown['total_cost']:.2f}, final {breakdown['final_price']:.2f}")
    db.session.commit()
    return jsonify({'success': True, 'pricing': pricing.to_dict()})


@pricing_blueprint.route('/api/pricing/<int:pricing_id>', methods=['DELETE'])
def delete_pricing(pricing_id):
    pricing = ProductPricing.query.get_or_404(pricing_id)
    db.session.delete(pricing)
    log_audit("DELETE", "ProductPricing", pricing_id, "Deleted pricing")
    db.session.commit()
    return jsonify({'success': True})
