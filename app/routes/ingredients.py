from flask import Blueprint, request, jsonify, current_app
from flask_babel import gettext as _
import pandas as pd
from ..models import db, Ingredient, ValidationError
from ..pricing import ingredient_cost_per_unit, parse_number
from .utils import log_audit, get_payload, require_fields, positive_number, units_list

ingredients_blueprint = Blueprint('ingredients', __name__)


def apply_ingredient_fields(ingredient, data):
    """Validate submitted ingredient data and copy it onto the model"""
    require_fields(data, 'name', 'unit', 'package_cost', 'package_amount')
    unit = str(data['unit']).strip()
    if unit not in units_list:
        raise ValidationError(_('Invalid unit: %(unit)s', unit=unit))

    ingredient.name = str(data['name']).strip()
    ingredient.unit = unit
    ingredient.package_cost = positive_number(data, 'package_cost', allow_zero=True)
    ingredient.package_amount = positive_number(data, 'package_amount')
    ingredient.cost_per_unit = ingredient_cost_per_unit(ingredient.package_cost, ingredient.package_amount)

    for field in ('brand', 'category', 'supplier'):
        if field in data:
            setattr(ingredient, field, data[field] or None)
    if data.get('stock') not in (None, ''):
        ingredient.stock = parse_number(data['stock'])
    return ingredient


# ----------------------------
# Ingredients Management
# ----------------------------
@ingredients_blueprint.route('/api/ingredients', methods=['GET'])
def ingredients():
    query = Ingredient.query
    search = request.args.get('search')
    if search:
        query = query.filter(Ingredient.name.ilike(f"%{search}%"))
    all_ingredients = query.order_by(Ingredient.name).all()
    return jsonify({'ingredients': [i.to_dict() for i in all_ingredients], 'units': units_list})


@ingredients_blueprint.route('/api/ingredients/<int:ingredient_id>', methods=['GET'])
def get_ingredient(ingredient_id):
    ingredient = Ingredient.query.get_or_404(ingredient_id)
    return jsonify(ingredient.to_dict())


@ingredients_blueprint.route('/api/ingredients', methods=['POST'])
def add_ingredient():
    data = get_payload()
    ingredient = Ingredient()
    try:
        apply_ingredient_fields(ingredient, data)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    db.session.add(ingredient)
    db.session.flush()
    log_audit("CREATE", "Ingredient", ingredient.id, f"Created ingredient {ingredient.name}")
    db.session.commit()
    return jsonify({'success': True, 'ingredient': ingredient.to_dict()}), 201


@ingredients_blueprint.route('/api/ingredients/<int:ingredient_id>', methods=['PUT', 'POST'])
def edit_ingredient(ingredient_id):
    ingredient = Ingredient.query.get_or_404(ingredient_id)
    data = get_payload()
    try:
        apply_ingredient_fields(ingredient, data)
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'success': False, 'error': str(e)}), 400

    log_audit("UPDATE", "Ingredient", ingredient.id,
              f"Updated ingredient {ingredient.name} (cost per {ingredient.unit}: {ingredient.cost_per_unit:.4f})")
    db.session.commit()
    return jsonify({'success': True, 'ingredient': ingredient.to_dict()})


@ingredients_blueprint.route('/api/ingredients/<int:ingredient_id>', methods=['DELETE'])
def delete_ingredient(ingredient_id):
    ingredient = Ingredient.query.get_or_404(ingredient_id)
    if ingredient.recipe_lines:
        recipes = ', '.join(sorted({line.recipe.name for line in ingredient.recipe_lines}))
        return jsonify({
            'success': False,
            'error': _('Ingredient is used in recipes: %(recipes)s', recipes=recipes)
        }), 400

    name = ingredient.name
    db.session.delete(ingredient)
    log_audit("DELETE", "Ingredient", ingredient_id, f"Deleted ingredient {name}")
    db.session.commit()
    return jsonify({'success': True})


# ----------------------------
# Bulk Ingredient Upload
# ----------------------------
@ingredients_blueprint.route('/api/ingredients/import', methods=['POST'])
def import_ingredients():
    """
    Create or update ingredients from a CSV or Excel sheet.

    Expected columns: name, unit, package_cost, package_amount and optionally brand.
    Rows are matched to existing ingredients by name; rows that fail validation
    are skipped and reported back with their sheet row number.
    """
    if 'file' not in request.files or not request.files['file'].filename:
        return jsonify({'success': False, 'error': _('No file uploaded')}), 400

    file = request.files['file']
    try:
        if file.filename.lower().endswith('.csv'):
            df = pd.read_csv(file)
        else:
            df = pd.read_excel(file)
    except Exception as e:
        current_app.logger.error(f"Ingredient import error: {str(e)}")
        return jsonify({'success': False, 'error': _('Could not read file')}), 400

    # Normalize column names (strip whitespace, lowercase)
    df.columns = df.columns.astype(str).str.strip().str.lower()

    created, updated, skipped = [], [], []
    for index, row in df.iterrows():
        sheet_row = index + 2  # header is row 1
        data = {}
        for col in ('name', 'unit', 'package_cost', 'package_amount', 'brand'):
            if col in df.columns and not pd.isna(row[col]):
                data[col] = str(row[col]).strip() if col in ('name', 'unit', 'brand') else row[col]

        if not data.get('name'):
            continue

        # Validate on a detached copy so a bad row never half-updates a stored ingredient
        try:
            apply_ingredient_fields(Ingredient(), data)
        except ValidationError as e:
            skipped.append({'row': sheet_row, 'name': data['name'], 'error': str(e)})
            continue

        ingredient = Ingredient.query.filter_by(name=data['name']).first()
        is_new = ingredient is None
        if is_new:
            ingredient = Ingredient()
        apply_ingredient_fields(ingredient, data)

        if is_new:
            db.session.add(ingredient)
            created.append(ingredient.name)
        else:
            updated.append(ingredient.name)

    log_audit("IMPORT", "Ingredient", details=f"Created {len(created)}, updated {len(updated)}, skipped {len(skipped)}")
    db.session.commit()
    current_app.logger.info(f"Ingredient import: {len(created)} created, {len(updated)} updated, {len(skipped)} skipped")

    return jsonify({
        'success': True,
        'created': created,
        'updated': updated,
        'skipped': skipped
    })
