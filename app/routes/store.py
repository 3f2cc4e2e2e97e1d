import re
from urllib.parse import quote
from flask import Blueprint, request, jsonify, current_app
from flask_babel import gettext as _
from ..models import db, Product, Testimonial, ValidationError
from ..pricing import parse_number
from .utils import log_audit, get_payload, require_fields, parse_bool, save_image, get_store_profile, read_entries

store_blueprint = Blueprint('store', __name__)

profile_fields = ['name', 'store_name', 'document', 'whatsapp', 'instagram', 'telegram',
                  'store_description', 'theme_color', 'subdomain', 'custom_domain']


def public_profile_or_none():
    profile = get_store_profile()
    return profile if profile.is_public else None


def whatsapp_link(number, lines, total):
    """wa.me link with the order summary as the pre-filled message"""
    currency = current_app.config['CURRENCY_SYMBOL']
    items = "\n".join(f"{qty:g}x {name} ({currency} {price:.2f})" for name, qty, price in lines)
    message = _("Hello! I would like to place an order:\n\n%(items)s\n\nTotal: %(currency)s %(total)s",
                items=items, currency=currency, total=f"{total:.2f}")
    digits = re.sub(r'\D', '', number or '')
    return f"https://wa.me/{digits}?text={quote(message)}"


# ----------------------------
# Store Settings
# ----------------------------
@store_blueprint.route('/api/settings/store', methods=['GET'])
def store_settings():
    return jsonify(get_store_profile().to_dict())


@store_blueprint.route('/api/settings/store', methods=['PUT', 'POST'])
def save_store_settings():
    profile = get_store_profile()
    data = get_payload()
    for field in profile_fields:
        if field in data:
            setattr(profile, field, data[field] or ('' if field in ('name', 'store_name') else None))
    if 'is_public' in data:
        profile.is_public = parse_bool(data['is_public'])
    if 'allow_reviews' in data:
        profile.allow_reviews = parse_bool(data['allow_reviews'])

    if profile.is_public and not profile.store_name:
        db.session.rollback()
        return jsonify({'success': False, 'error': _('A public store needs a name')}), 400

    logo = save_image('logo')
    if logo:
        profile.logo_filename = logo
    banner = save_image('banner')
    if banner:
        profile.banner_filename = banner

    log_audit("UPDATE", "StoreProfile", profile.id, f"Store settings saved (public: {profile.is_public})")
    db.session.commit()
    return jsonify({'success': True, 'store': profile.to_dict()})


# ----------------------------
# Public Storefront
# ----------------------------
@store_blueprint.route('/store', methods=['GET'])
def storefront():
    profile = public_profile_or_none()
    if not profile:
        return jsonify({'error': _('Store not found')}), 404

    products = Product.query.filter_by(active=True, visible_in_store=True).order_by(Product.name).all()
    testimonials = Testimonial.query.filter_by(status='approved') \
        .order_by(Testimonial.created_at.desc()).all()

    store = profile.to_dict()
    # Internal identification stays private
    store.pop('document', None)
    return jsonify({
        'store': store,
        'products': [{
            'id': p.id,
            'name': p.name,
            'description': p.description,
            'category': p.category,
            'image_filename': p.image_filename,
            'price': p.price
        } for p in products],
        'testimonials': [t.to_dict() for t in testimonials]
    })


@store_blueprint.route('/store/testimonials', methods=['POST'])
def submit_testimonial():
    profile = public_profile_or_none()
    if not profile:
        return jsonify({'success': False, 'error': _('Store not found')}), 404
    if not profile.allow_reviews:
        return jsonify({'success': False, 'error': _('This store does not accept reviews')}), 403

    data = get_payload()
    try:
        require_fields(data, 'customer_name', 'content', 'rating')
        rating = int(parse_number(data['rating']))
        if rating < 1 or rating > 5:
            raise ValidationError(_('Rating must be between 1 and 5'))
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    testimonial = Testimonial(
        customer_name=str(data['customer_name']).strip(),
        content=str(data['content']).strip(),
        rating=rating,
        status='pending'
    )
    db.session.add(testimonial)
    db.session.commit()
    current_app.logger.info(f"New testimonial from {testimonial.customer_name} awaiting moderation")
    return jsonify({'success': True, 'testimonial': testimonial.to_dict()}), 201


@store_blueprint.route('/store/checkout', methods=['POST'])
def checkout():
    """
    Turn a storefront cart into a WhatsApp order message.

    Nothing is stored: the vendor registers the sale after talking to the
    customer. Lines with a quantity of zero or less are dropped.
    """
    profile = public_profile_or_none()
    if not profile:
        return jsonify({'success': False, 'error': _('Store not found')}), 404
    if not profile.whatsapp:
        return jsonify({'success': False, 'error': _('The store has no WhatsApp number')}), 400

    data = request.get_json(silent=True) or {}
    try:
        entries = read_entries(data.get('items') or [])
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    lines = []
    for entry in entries:
        quantity = parse_number(entry.get('quantity'))
        if quantity <= 0:
            continue
        product = Product.query.get(int(parse_number(entry.get('product_id'))))
        if not product or not product.active or not product.visible_in_store:
            return jsonify({'success': False, 'error': _('Product %(id)s is not available',
                                                          id=entry.get('product_id'))}), 400
        lines.append((product, quantity))

    if not lines:
        return jsonify({'success': False, 'error': _('The cart is empty')}), 400

    total = sum(product.price * quantity for product, quantity in lines)
    return jsonify({
        'success': True,
        'items': [{
            'product_id': product.id,
            'name': product.name,
            'quantity': quantity,
            'unit_price': product.price,
            'subtotal': product.price * quantity
        } for product, quantity in lines],
        'total': total,
        'whatsapp_url': whatsapp_link(profile.whatsapp,
                                      [(p.name, q, p.price) for p, q in lines], total)
    })


# ----------------------------
# Testimonial Moderation
# ----------------------------
@store_blueprint.route('/api/testimonials', methods=['GET'])
def testimonials():
    query = Testimonial.query
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    all_testimonials = query.order_by(Testimonial.created_at.desc(), Testimonial.id.desc()).all()
    return jsonify({'testimonials': [t.to_dict() for t in all_testimonials]})


def moderate(testimonial_id, status):
    testimonial = Testimonial.query.get_or_404(testimonial_id)
    testimonial.status = status
    log_audit("UPDATE", "Testimonial", testimonial.id, f"Testimonial by {testimonial.customer_name} {status}")
    db.session.commit()
    return jsonify({'success': True, 'testimonial': testimonial.to_dict()})


@store_blueprint.route('/api/testimonials/<int:testimonial_id>/approve', methods=['POST'])
def approve_testimonial(testimonial_id):
    return moderate(testimonial_id, 'approved')


@store_blueprint.route('/api/testimonials/<int:testimonial_id>/reject', methods=['POST'])
def reject_testimonial(testimonial_id):
    return moderate(testimonial_id, 'rejected')
