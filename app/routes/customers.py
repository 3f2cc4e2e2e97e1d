from flask import Blueprint, request, jsonify
from flask_babel import gettext as _
from ..models import db, Customer, CustomerAddress, CustomerNote, Order, ValidationError
from .utils import log_audit, get_payload, require_fields, parse_bool, parse_date

customers_blueprint = Blueprint('customers', __name__)

address_fields = ['street', 'number', 'complement', 'neighborhood', 'city', 'state', 'zip_code', 'reference']


def apply_customer_fields(customer, data):
    require_fields(data, 'full_name')
    customer.full_name = str(data['full_name']).strip()
    customer.email = data.get('email') or None
    customer.phone = data.get('phone') or None
    customer.document = data.get('document') or None
    birthday = parse_date(data.get('birthday'))
    customer.birthday = birthday.date() if birthday else None
    return customer


def set_default_address(customer, address):
    for other in customer.addresses:
        other.is_default = other is address


# ----------------------------
# Customers Management
# ----------------------------
@customers_blueprint.route('/api/customers', methods=['GET'])
def customers():
    query = Customer.query
    search = request.args.get('search')
    if search:
        like = f"%{search}%"
        query = query.filter(
            Customer.full_name.ilike(like) | Customer.email.ilike(like) | Customer.phone.ilike(like)
        )
    all_customers = query.order_by(Customer.full_name).all()
    return jsonify({'customers': [c.to_dict() for c in all_customers]})


@customers_blueprint.route('/api/customers/<int:customer_id>', methods=['GET'])
def get_customer(customer_id):
    customer = Customer.query.get_or_404(customer_id)
    data = customer.to_dict()
    data['addresses'] = [a.to_dict() for a in customer.addresses]
    data['orders_count'] = len(customer.orders)
    data['total_spent'] = sum(order.total_amount for order in customer.orders)
    return jsonify(data)


@customers_blueprint.route('/api/customers', methods=['POST'])
def add_customer():
    data = get_payload()
    customer = Customer()
    try:
        apply_customer_fields(customer, data)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    db.session.add(customer)
    db.session.flush()
    log_audit("CREATE", "Customer", customer.id, f"Created customer {customer.full_name}")
    db.session.commit()
    return jsonify({'success': True, 'customer': customer.to_dict()}), 201


@customers_blueprint.route('/api/customers/<int:customer_id>', methods=['PUT', 'POST'])
def edit_customer(customer_id):
    customer = Customer.query.get_or_404(customer_id)
    data = get_payload()
    try:
        apply_customer_fields(customer, data)
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'success': False, 'error': str(e)}), 400

    log_audit("UPDATE", "Customer", customer.id, f"Updated customer {customer.full_name}")
    db.session.commit()
    return jsonify({'success': True, 'customer': customer.to_dict()})


@customers_blueprint.route('/api/customers/<int:customer_id>', methods=['DELETE'])
def delete_customer(customer_id):
    customer = Customer.query.get_or_404(customer_id)
    name = customer.full_name
    # Orders keep the customer's name but lose the link
    for order in list(customer.orders):
        order.customer = None
        order.address = None
    db.session.delete(customer)
    log_audit("DELETE", "Customer", customer_id, f"Deleted customer {name}")
    db.session.commit()
    return jsonify({'success': True})


# ----------------------------
# Customer Addresses
# ----------------------------
@customers_blueprint.route('/api/customers/<int:customer_id>/addresses', methods=['GET'])
def customer_addresses(customer_id):
    customer = Customer.query.get_or_404(customer_id)
    return jsonify({'addresses': [a.to_dict() for a in customer.addresses]})


@customers_blueprint.route('/api/customers/<int:customer_id>/addresses', methods=['POST'])
def add_customer_address(customer_id):
    customer = Customer.query.get_or_404(customer_id)
    data = get_payload()
    try:
        require_fields(data, 'street', 'number', 'neighborhood', 'city', 'state', 'zip_code')
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    address = CustomerAddress(**{field: data.get(field) or None for field in address_fields})
    customer.addresses.append(address)
    # The first address is always the default one
    if parse_bool(data.get('is_default')) or len(customer.addresses) == 1:
        set_default_address(customer, address)

    db.session.flush()
    log_audit("CREATE", "CustomerAddress", address.id, f"Added address for {customer.full_name}")
    db.session.commit()
    return jsonify({'success': True, 'address': address.to_dict()}), 201


@customers_blueprint.route('/api/customers/<int:customer_id>/addresses/<int:address_id>', methods=['PUT', 'POST'])
def edit_customer_address(customer_id, address_id):
    customer = Customer.query.get_or_404(customer_id)
    address = CustomerAddress.query.filter_by(id=address_id, customer_id=customer_id).first_or_404()
    data = get_payload()
    for field in address_fields:
        if field in data:
            setattr(address, field, data[field] or None)
    try:
        require_fields(address.to_dict(), 'street', 'number', 'neighborhood', 'city', 'state', 'zip_code')
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'success': False, 'error': str(e)}), 400

    if parse_bool(data.get('is_default')):
        set_default_address(customer, address)

    log_audit("UPDATE", "CustomerAddress", address.id, f"Updated address for {customer.full_name}")
    db.session.commit()
    return jsonify({'success': True, 'address': address.to_dict()})


@customers_blueprint.route('/api/customers/<int:customer_id>/addresses/<int:address_id>', methods=['DELETE'])
def delete_customer_address(customer_id, address_id):
    customer = Customer.query.get_or_404(customer_id)
    address = CustomerAddress.query.filter_by(id=address_id, customer_id=customer_id).first_or_404()
    # Orders delivered there keep their other data but lose the link
    for order in Order.query.filter_by(address_id=address_id).all():
        order.address = None
    was_default = address.is_default
    customer.addresses.remove(address)
    if was_default and customer.addresses:
        set_default_address(customer, customer.addresses[0])

    log_audit("DELETE", "CustomerAddress", address_id, f"Removed address of {customer.full_name}")
    db.session.commit()
    return jsonify({'success': True})


# ----------------------------
# Customer Notes
# ----------------------------
@customers_blueprint.route('/api/customers/<int:customer_id>/notes', methods=['GET'])
def customer_notes(customer_id):
    customer = Customer.query.get_or_404(customer_id)
    notes = sorted(customer.notes, key=lambda n: n.id, reverse=True)
    return jsonify({'notes': [n.to_dict() for n in notes]})


@customers_blueprint.route('/api/customers/<int:customer_id>/notes', methods=['POST'])
def add_customer_note(customer_id):
    customer = Customer.query.get_or_404(customer_id)
    data = get_payload()
    content = (data.get('content') or '').strip()
    if not content:
        return jsonify({'success': False, 'error': _('Note can not be empty')}), 400

    note = CustomerNote(content=content)
    customer.notes.append(note)
    db.session.commit()
    return jsonify({'success': True, 'note': note.to_dict()}), 201
