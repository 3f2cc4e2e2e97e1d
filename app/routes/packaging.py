from flask import Blueprint, request, jsonify
from flask_babel import gettext as _
from ..models import db, Package, ProductPackage, RecipePackage, ValidationError
from ..pricing import parse_number
from .utils import log_audit, get_payload, require_fields, positive_number, save_image

packaging_blueprint = Blueprint('packaging', __name__)


def apply_package_fields(package, data):
    require_fields(data, 'name', 'unit_cost')
    package.name = str(data['name']).strip()
    package.type = data.get('type') or 'box'
    package.capacity = data.get('capacity') or None
    package.supplier = data.get('supplier') or None
    package.unit_cost = positive_number(data, 'unit_cost', allow_zero=True)
    if data.get('stock') not in (None, ''):
        package.stock = parse_number(data['stock'])
    return package


# ----------------------------
# Packaging Management
# ----------------------------
@packaging_blueprint.route('/api/packages', methods=['GET'])
def packaging():
    query = Package.query
    package_type = request.args.get('type')
    if package_type:
        query = query.filter_by(type=package_type)
    all_packages = query.order_by(Package.name).all()
    return jsonify({'packages': [p.to_dict() for p in all_packages]})


@packaging_blueprint.route('/api/packages/<int:package_id>', methods=['GET'])
def get_package(package_id):
    package = Package.query.get(package_id)
    if not package:
        return jsonify({'error': _('Package not found')}), 404
    return jsonify(package.to_dict())


@packaging_blueprint.route('/api/packages', methods=['POST'])
def add_package():
    data = get_payload()
    package = Package()
    try:
        apply_package_fields(package, data)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    package.image_filename = save_image()
    db.session.add(package)
    db.session.flush()
    log_audit("CREATE", "Package", package.id, f"Created package {package.name}")
    db.session.commit()
    return jsonify({'success': True, 'package': package.to_dict()}), 201


@packaging_blueprint.route('/api/packages/<int:package_id>', methods=['PUT', 'POST'])
def edit_package(package_id):
    package = Package.query.get(package_id)
    if not package:
        return jsonify({'success': False, 'error': _('Package not found')}), 404

    data = get_payload()
    try:
        apply_package_fields(package, data)
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'success': False, 'error': str(e)}), 400

    image_filename = save_image()
    if image_filename:
        package.image_filename = image_filename

    log_audit("UPDATE", "Package", package.id, f"Updated package {package.name} (unit cost {package.unit_cost:.2f})")
    db.session.commit()
    return jsonify({'success': True, 'package': package.to_dict()})


@packaging_blueprint.route('/api/packages/<int:package_id>', methods=['DELETE'])
def delete_package(package_id):
    package = Package.query.get(package_id)
    if not package:
        return jsonify({'success': False, 'error': _('Package not found')}), 404

    in_use = (ProductPackage.query.filter_by(package_id=package_id).first()
              or RecipePackage.query.filter_by(package_id=package_id).first())
    if in_use:
        return jsonify({'success': False, 'error': _('Package is used by a product or recipe')}), 400

    name = package.name
    db.session.delete(package)
    log_audit("DELETE", "Package", package_id, f"Deleted package {name}")
    db.session.commit()
    return jsonify({'success': True})
