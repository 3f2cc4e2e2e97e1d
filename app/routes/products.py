from flask import Blueprint, request, jsonify
from flask_babel import gettext as _
from sqlalchemy.orm import joinedload
from ..models import db, Product, ProductRecipe, ProductPackage, Recipe, Package, OrderItem, ValidationError
from ..pricing import PriceMarginSync, compute_product_cost, parse_number, DEFAULT_PROFIT_MARGIN, EDITING_MARGIN
from .utils import log_audit, get_payload, require_fields, parse_bool, save_image, read_entries

products_blueprint = Blueprint('products', __name__)


def read_lines(data, key, id_field):
    """
    Extract (id, quantity) pairs for recipe or package lines.

    JSON bodies send a list of objects under `key`; HTML forms send parallel
    `<id_field>[]` / `<id_field>_quantity[]` lists. Returns None when the
    request carries no lines at all, so updates can leave them untouched.
    """
    if isinstance(data.get(key), list):
        raw = [(line.get(id_field), line.get('quantity', 1)) for line in read_entries(data[key])]
    elif f'{id_field}[]' in request.form:
        ids = request.form.getlist(f'{id_field}[]')
        quantities = request.form.getlist(f'{id_field}_quantity[]')
        raw = [(ids[i], quantities[i] if i < len(quantities) else 1) for i in range(len(ids))]
    else:
        return None

    lines = []
    seen = set()
    for item_id, quantity in raw:
        if item_id in (None, ''):
            continue
        item_id = int(parse_number(item_id))
        quantity = parse_number(quantity)
        if quantity <= 0:
            raise ValidationError(_('Quantity must be greater than zero'))
        if item_id in seen:
            raise ValidationError(_('The same item was added twice'))
        seen.add(item_id)
        lines.append((item_id, quantity))
    return lines


def build_product_lines(product, recipe_lines, package_lines):
    # Existing lines are updated in place; lines left out are removed by the delete-orphan cascade
    if recipe_lines is not None:
        existing = {line.recipe_id: line for line in product.recipes}
        kept = []
        for recipe_id, quantity in recipe_lines:
            line = existing.get(recipe_id)
            if line is None:
                recipe = Recipe.query.get(recipe_id)
                if not recipe:
                    raise ValidationError(_('Recipe %(id)s not found', id=recipe_id))
                line = ProductRecipe(recipe=recipe)
            line.quantity = quantity
            kept.append(line)
        product.recipes = kept

    if package_lines is not None:
        existing = {line.package_id: line for line in product.packages}
        kept = []
        for package_id, quantity in package_lines:
            line = existing.get(package_id)
            if line is None:
                package = Package.query.get(package_id)
                if not package:
                    raise ValidationError(_('Package %(id)s not found', id=package_id))
                line = ProductPackage(package=package)
            line.quantity = quantity
            kept.append(line)
        product.packages = kept


def product_cost(product):
    return compute_product_cost(
        [{'cost_per_unit': line.recipe.cost_per_unit, 'quantity': line.quantity} for line in product.recipes],
        [{'unit_cost': line.package.unit_cost, 'quantity': line.quantity} for line in product.packages]
    )


def apply_pricing(product, data):
    """Store cost, margin and price, deriving one of the last two from whichever was edited"""
    margin = data.get('profit_margin')
    if margin in (None, ''):
        margin = product.profit_margin if product.profit_margin is not None else DEFAULT_PROFIT_MARGIN
    price = data.get('price')
    if price in (None, ''):
        price = product.price

    sync = PriceMarginSync(
        total_cost=product_cost(product),
        yield_amount=1,
        profit_margin=margin,
        final_price=price,
        last_edited=data.get('last_edited') or EDITING_MARGIN
    )
    product.cost = sync.total_cost
    product.profit_margin = sync.profit_margin
    product.price = sync.final_price
    return sync


def apply_product_fields(product, data):
    require_fields(data, 'name')
    product.name = str(data['name']).strip()
    product.description = data.get('description') or None
    product.category = data.get('category') or None
    if 'active' in data:
        product.active = parse_bool(data['active'], True)
    if 'visible_in_store' in data:
        product.visible_in_store = parse_bool(data['visible_in_store'], True)
    build_product_lines(product, read_lines(data, 'recipes', 'recipe_id'), read_lines(data, 'packages', 'package_id'))
    apply_pricing(product, data)
    return product


# ----------------------------
# Products Management
# ----------------------------
@products_blueprint.route('/api/products', methods=['GET'])
def products():
    query = Product.query.options(joinedload(Product.recipes), joinedload(Product.packages))
    category = request.args.get('category')
    if category:
        query = query.filter(Product.category == category)
    if 'active' in request.args:
        query = query.filter(Product.active == parse_bool(request.args.get('active')))
    all_products = query.order_by(Product.name).all()
    return jsonify({'products': [p.to_dict() for p in all_products]})


@products_blueprint.route('/api/products/<int:product_id>', methods=['GET'])
def get_product(product_id):
    product = Product.query.get_or_404(product_id)
    return jsonify(product.to_dict(include_lines=True))


@products_blueprint.route('/api/products', methods=['POST'])
def add_product():
    data = get_payload()
    product = Product(profit_margin=DEFAULT_PROFIT_MARGIN, price=0.0, active=True, visible_in_store=True)
    try:
        apply_product_fields(product, data)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    product.image_filename = save_image()
    db.session.add(product)
    db.session.flush()
    log_audit("CREATE", "Product", product.id,
              f"Created product {product.name} (cost {product.cost:.2f}, price {product.price:.2f})")
    db.session.commit()
    return jsonify({'success': True, 'product': product.to_dict(include_lines=True)}), 201


@products_blueprint.route('/api/products/<int:product_id>', methods=['PUT', 'POST'])
def edit_product(product_id):
    product = Product.query.get_or_404(product_id)
    data = get_payload()
    try:
        with db.session.no_autoflush:
            apply_product_fields(product, data)
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'success': False, 'error': str(e)}), 400

    image_filename = save_image()
    if image_filename:
        product.image_filename = image_filename

    log_audit("UPDATE", "Product", product.id,
              f"Updated product {product.name} (cost {product.cost:.2f}, margin {product.profit_margin:.1f}%, price {product.price:.2f})")
    db.session.commit()
    return jsonify({'success': True, 'product': product.to_dict(include_lines=True)})


@products_blueprint.route('/api/products/<int:product_id>', methods=['DELETE'])
def delete_product(product_id):
    product = Product.query.get_or_404(product_id)
    if OrderItem.query.filter_by(product_id=product_id).first():
        # Sold products stay for order history; hide them instead
        product.active = False
        product.visible_in_store = False
        log_audit("ARCHIVE", "Product", product_id, f"Archived product {product.name}")
        db.session.commit()
        return jsonify({'success': True, 'archived': True})

    name = product.name
    db.session.delete(product)
    log_audit("DELETE", "Product", product_id, f"Deleted product {name}")
    db.session.commit()
    return jsonify({'success': True, 'archived': False})


@products_blueprint.route('/api/products/quote', methods=['POST'])
def quote_product():
    """
    Live preview for the product form: nothing is saved.

    The body carries either the product lines or a ready `total_cost`, the
    current margin and price, and `last_edited` naming the field the user
    touched last.
    """
    data = request.get_json(silent=True) or {}
    try:
        recipe_lines = read_lines(data, 'recipes', 'recipe_id')
        package_lines = read_lines(data, 'packages', 'package_id')
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    if recipe_lines is None and package_lines is None:
        total_cost = parse_number(data.get('total_cost'))
    else:
        recipes = {r.id: r for r in Recipe.query.filter(Recipe.id.in_([i for i, _q in recipe_lines or []])).all()}
        packages = {p.id: p for p in Package.query.filter(Package.id.in_([i for i, _q in package_lines or []])).all()}
        total_cost = compute_product_cost(
            [{'cost_per_unit': recipes[i].cost_per_unit, 'quantity': q} for i, q in recipe_lines or [] if i in recipes],
            [{'unit_cost': packages[i].unit_cost, 'quantity': q} for i, q in package_lines or [] if i in packages]
        )

    margin = data.get('profit_margin')
    sync = PriceMarginSync(
        total_cost=total_cost,
        yield_amount=data.get('yield_amount', 1),
        profit_margin=DEFAULT_PROFIT_MARGIN if margin in (None, '') else margin,
        final_price=data.get('price'),
        last_edited=data.get('last_edited') or EDITING_MARGIN
    )
    return jsonify({'success': True, 'quote': sync.snapshot()})
