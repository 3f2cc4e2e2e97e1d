from flask import Blueprint, jsonify
from flask_babel import gettext as _
from ..models import db, LaborCost, FixedCost, ValidationError
from ..pricing import total_monthly_fixed_costs
from .utils import log_audit, get_payload, require_fields, positive_number, fixed_cost_frequencies

costs_blueprint = Blueprint('costs', __name__)


# ----------------------------
# Labor Cost
# ----------------------------
@costs_blueprint.route('/api/costs/labor', methods=['GET'])
def labor_cost():
    labor = LaborCost.query.first()
    return jsonify({'labor_cost': labor.to_dict() if labor else None})


@costs_blueprint.route('/api/costs/labor', methods=['PUT', 'POST'])
def save_labor_cost():
    data = get_payload()
    try:
        require_fields(data, 'hourly_rate')
        hourly_rate = positive_number(data, 'hourly_rate', allow_zero=True)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    # A single hourly rate is kept; saving again overwrites it
    labor = LaborCost.query.first()
    if labor:
        labor.hourly_rate = hourly_rate
        action = "UPDATE"
    else:
        labor = LaborCost(hourly_rate=hourly_rate)
        db.session.add(labor)
        db.session.flush()
        action = "CREATE"

    log_audit(action, "LaborCost", labor.id, f"Hourly rate set to {hourly_rate:.2f}")
    db.session.commit()
    return jsonify({'success': True, 'labor_cost': labor.to_dict()})


# ----------------------------
# Fixed Costs
# ----------------------------
def apply_fixed_cost_fields(cost, data):
    require_fields(data, 'name', 'amount', 'frequency')
    if data['frequency'] not in fixed_cost_frequencies:
        raise ValidationError(_('Invalid frequency: %(frequency)s', frequency=data['frequency']))
    cost.name = str(data['name']).strip()
    cost.amount = positive_number(data, 'amount', allow_zero=True)
    cost.frequency = data['frequency']
    return cost


@costs_blueprint.route('/api/costs/fixed', methods=['GET'])
def fixed_costs():
    all_costs = FixedCost.query.order_by(FixedCost.name).all()
    return jsonify({
        'fixed_costs': [c.to_dict() for c in all_costs],
        'total_monthly': total_monthly_fixed_costs((c.amount, c.frequency) for c in all_costs),
        'frequencies': fixed_cost_frequencies
    })


@costs_blueprint.route('/api/costs/fixed/<int:cost_id>', methods=['GET'])
def get_fixed_cost(cost_id):
    cost = FixedCost.query.get_or_404(cost_id)
    return jsonify(cost.to_dict())


@costs_blueprint.route('/api/costs/fixed', methods=['POST'])
def add_fixed_cost():
    data = get_payload()
    cost = FixedCost()
    try:
        apply_fixed_cost_fields(cost, data)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    db.session.add(cost)
    db.session.flush()
    log_audit("CREATE", "FixedCost", cost.id, f"Created fixed cost {cost.name} ({cost.amount:.2f} {cost.frequency})")
    db.session.commit()
    return jsonify({'success': True, 'fixed_cost': cost.to_dict()}), 201


@costs_blueprint.route('/api/costs/fixed/<int:cost_id>', methods=['PUT', 'POST'])
def edit_fixed_cost(cost_id):
    cost = FixedCost.query.get_or_404(cost_id)
    data = get_payload()
    try:
        apply_fixed_cost_fields(cost, data)
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'success': False, 'error': str(e)}), 400

    log_audit("UPDATE", "FixedCost", cost.id, f"Updated fixed cost {cost.name}")
    db.session.commit()
    return jsonify({'success': True, 'fixed_cost': cost.to_dict()})


@costs_blueprint.route('/api/costs/fixed/<int:cost_id>', methods=['DELETE'])
def delete_fixed_cost(cost_id):
    cost = FixedCost.query.get_or_404(cost_id)
    name = cost.name
    db.session.delete(cost)
    log_audit("DELETE", "FixedCost", cost_id, f"Deleted fixed cost {name}")
    db.session.commit()
    return jsonify({'success': True})
