from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify, current_app
from flask_babel import gettext as _
from sqlalchemy import cast, String
from ..models import db, Order, OrderItem, Product, Customer, CustomerAddress, ValidationError
from ..pricing import order_totals, parse_number
from .utils import log_audit, get_payload, require_fields, parse_bool, parse_date, positive_number, read_entries

orders_blueprint = Blueprint('orders', __name__)

order_statuses = ["pending", "confirmed", "in_production", "ready", "delivered", "cancelled"]
payment_statuses = ["pending", "paid", "refunded"]
delivery_statuses = ["pending", "in_transit", "delivered"]


def read_items(data):
    """(product, quantity, unit_price) triples from a JSON `items` list or form lists"""
    if isinstance(data.get('items'), list):
        raw = [(item.get('product_id'), item.get('quantity'), item.get('unit_price')) for item in read_entries(data['items'])]
    else:
        ids = request.form.getlist('product_id[]')
        quantities = request.form.getlist('quantity[]')
        prices = request.form.getlist('unit_price[]')
        raw = [(ids[i],
                quantities[i] if i < len(quantities) else None,
                prices[i] if i < len(prices) else None) for i in range(len(ids))]

    items = []
    for product_id, quantity, unit_price in raw:
        if product_id in (None, ''):
            continue
        product = Product.query.get(int(parse_number(product_id)))
        if not product:
            raise ValidationError(_('Product %(id)s not found', id=product_id))
        quantity = parse_number(quantity)
        if quantity <= 0:
            raise ValidationError(_('Quantity must be greater than zero'))
        # Sold at the catalog price unless the seller typed another one
        unit_price = product.price if unit_price in (None, '') else parse_number(unit_price)
        if unit_price < 0:
            raise ValidationError(_('unit_price can not be negative'))
        items.append((product, quantity, unit_price))

    if not items:
        raise ValidationError(_('An order needs at least one item'))
    return items


def read_customer(order, data):
    customer_id = data.get('customer_id')
    if customer_id not in (None, ''):
        customer = Customer.query.get(int(parse_number(customer_id)))
        if not customer:
            raise ValidationError(_('Customer not found'))
        order.customer = customer
        order.customer_name = customer.full_name
        order.customer_email = customer.email
        order.customer_phone = customer.phone
    else:
        require_fields(data, 'customer_name')
        order.customer = None
        order.customer_name = str(data['customer_name']).strip()
        order.customer_email = data.get('customer_email') or None
        order.customer_phone = data.get('customer_phone') or None

    address_id = data.get('address_id')
    order.address = None
    if address_id not in (None, ''):
        address = CustomerAddress.query.get(int(parse_number(address_id)))
        if not address or order.customer is None or address.customer_id != order.customer.id:
            raise ValidationError(_('Address does not belong to this customer'))
        order.address = address


def build_order(data):
    require_fields(data, 'payment_method')
    order = Order(status='pending', payment_status='pending', sale_type='manual')
    read_customer(order, data)
    items = read_items(data)

    order.discount_amount = positive_number(data, 'discount_amount', allow_zero=True)
    order.additional_fees = positive_number(data, 'additional_fees', allow_zero=True)
    order.payment_method = data['payment_method']
    order.sale_origin = data.get('sale_origin') or None
    order.seller_notes = data.get('seller_notes') or None
    order.internal_notes = data.get('internal_notes') or None
    order.priority = parse_bool(data.get('priority'))
    order.delivery_date = parse_date(data.get('delivery_date'))
    order.created_at = parse_date(data.get('order_date')) or datetime.utcnow()
    if data.get('payment_status') in payment_statuses:
        order.payment_status = data['payment_status']

    for product, quantity, unit_price in items:
        order.items.append(OrderItem(product=product, quantity=quantity, unit_price=unit_price))

    totals = order_totals(
        [(quantity, unit_price, product.cost) for product, quantity, unit_price in items],
        order.discount_amount,
        order.additional_fees
    )
    order.total_amount = totals['total_amount']
    order.estimated_profit = totals['estimated_profit']
    order.profit_margin = totals['profit_margin']
    return order


# ----------------------------
# Orders / Sales
# ----------------------------
@orders_blueprint.route('/api/orders', methods=['GET'])
def orders():
    query = Order.query

    try:
        start = parse_date(request.args.get('start'))
        end = parse_date(request.args.get('end'))
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        # End date is inclusive
        query = query.filter(Order.created_at < end + timedelta(days=1))

    status = request.args.get('status')
    if status:
        query = query.filter(Order.status == status)
    payment_method = request.args.get('payment_method')
    if payment_method:
        query = query.filter(Order.payment_method == payment_method)
    search = request.args.get('search')
    if search:
        like = f"%{search}%"
        query = query.filter(Order.customer_name.ilike(like) | cast(Order.id, String).like(like))

    all_orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
    return jsonify({'orders': [o.to_dict() for o in all_orders]})


@orders_blueprint.route('/api/orders/<int:order_id>', methods=['GET'])
def get_order(order_id):
    order = Order.query.get_or_404(order_id)
    data = order.to_dict(include_items=True)
    data['address'] = order.address.to_dict() if order.address else None
    data['internal_notes'] = order.internal_notes
    return jsonify(data)


@orders_blueprint.route('/api/orders', methods=['POST'])
def add_order():
    data = get_payload()
    try:
        with db.session.no_autoflush:
            order = build_order(data)
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'success': False, 'error': str(e)}), 400

    try:
        db.session.add(order)
        db.session.flush()
        log_audit("CREATE", "Order", order.id,
                  f"Order for {order.customer_name}: {len(order.items)} items, total {order.total_amount:.2f}")
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to save order: {e}")
        return jsonify({'success': False, 'error': _('Could not save the order')}), 500

    return jsonify({'success': True, 'order': order.to_dict(include_items=True)}), 201


@orders_blueprint.route('/api/orders/<int:order_id>/status', methods=['PUT', 'POST'])
def update_order_status(order_id):
    order = Order.query.get_or_404(order_id)
    data = get_payload()

    # Every field is checked before any of them is applied
    updates = {}
    for field, allowed in (('status', order_statuses),
                           ('payment_status', payment_statuses),
                           ('delivery_status', delivery_statuses)):
        value = data.get(field)
        if value in (None, ''):
            continue
        if value not in allowed:
            return jsonify({'success': False, 'error': _('Invalid %(field)s: %(value)s', field=field, value=value)}), 400
        updates[field] = value

    if not updates:
        return jsonify({'success': False, 'error': _('Nothing to update')}), 400

    changes = []
    for field, value in updates.items():
        setattr(order, field, value)
        changes.append(f"{field}={value}")

    log_audit("UPDATE", "Order", order.id, f"Order status changed: {', '.join(changes)}")
    db.session.commit()
    return jsonify({'success': True, 'order': order.to_dict()})


@orders_blueprint.route('/api/orders/<int:order_id>', methods=['DELETE'])
def delete_order(order_id):
    order = Order.query.get_or_404(order_id)
    name = order.customer_name
    db.session.delete(order)
    log_audit("DELETE", "Order", order_id, f"Deleted order of {name}")
    db.session.commit()
    return jsonify({'success': True})
