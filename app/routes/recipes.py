from flask import Blueprint, request, jsonify, current_app
from flask_babel import gettext as _
from ..models import db, Recipe, RecipeIngredient, RecipePackage, Ingredient, Package, ProductRecipe, ValidationError
from ..pricing import parse_number
from .utils import log_audit, get_payload, require_fields, positive_number, save_image, refresh_recipe_costs

recipes_blueprint = Blueprint('recipes', __name__)


def apply_recipe_fields(recipe, data):
    require_fields(data, 'name')
    servings = int(parse_number(data.get('servings'), 1))
    if servings < 1:
        raise ValidationError(_('Servings must be at least 1'))

    recipe.name = str(data['name']).strip()
    recipe.servings = servings
    recipe.description = data.get('description') or None
    recipe.category = data.get('category') or None
    return recipe


# ----------------------------
# Recipes Management
# ----------------------------
@recipes_blueprint.route('/api/recipes', methods=['GET'])
def recipes():
    query = Recipe.query
    category = request.args.get('category')
    if category:
        query = query.filter_by(category=category)
    all_recipes = query.order_by(Recipe.name).all()
    return jsonify({'recipes': [r.to_dict() for r in all_recipes]})


@recipes_blueprint.route('/api/recipes/<int:recipe_id>', methods=['GET'])
def recipe_details(recipe_id):
    recipe = Recipe.query.get_or_404(recipe_id)
    return jsonify(recipe.to_dict(include_lines=True))


@recipes_blueprint.route('/api/recipes', methods=['POST'])
def add_recipe():
    data = get_payload()
    recipe = Recipe()
    try:
        apply_recipe_fields(recipe, data)
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    recipe.image_filename = save_image()
    refresh_recipe_costs(recipe)
    db.session.add(recipe)
    db.session.flush()
    log_audit("CREATE", "Recipe", recipe.id, f"Created recipe {recipe.name}")
    db.session.commit()
    return jsonify({'success': True, 'recipe': recipe.to_dict(include_lines=True)}), 201


@recipes_blueprint.route('/api/recipes/<int:recipe_id>', methods=['PUT', 'POST'])
def edit_recipe(recipe_id):
    recipe = Recipe.query.get_or_404(recipe_id)
    data = get_payload()
    try:
        apply_recipe_fields(recipe, data)
    except ValidationError as e:
        db.session.rollback()
        return jsonify({'success': False, 'error': str(e)}), 400

    image_filename = save_image()
    if image_filename:
        recipe.image_filename = image_filename

    # Servings may have changed, so the per-serving snapshot follows
    refresh_recipe_costs(recipe)
    log_audit("UPDATE", "Recipe", recipe.id, f"Updated recipe {recipe.name}")
    db.session.commit()
    return jsonify({'success': True, 'recipe': recipe.to_dict(include_lines=True)})


@recipes_blueprint.route('/api/recipes/<int:recipe_id>', methods=['DELETE'])
def delete_recipe(recipe_id):
    recipe = Recipe.query.get_or_404(recipe_id)
    if ProductRecipe.query.filter_by(recipe_id=recipe_id).first():
        return jsonify({'success': False, 'error': _('Recipe is used by a product')}), 400

    name = recipe.name
    db.session.delete(recipe)
    log_audit("DELETE", "Recipe", recipe_id, f"Deleted recipe {name}")
    db.session.commit()
    return jsonify({'success': True})


# ----------------------------
# Recipe Lines
# ----------------------------
@recipes_blueprint.route('/api/recipes/<int:recipe_id>/ingredients', methods=['POST'])
def add_recipe_ingredient(recipe_id):
    recipe = Recipe.query.get_or_404(recipe_id)
    data = get_payload()
    try:
        require_fields(data, 'ingredient_id', 'amount')
        amount = positive_number(data, 'amount')
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    ingredient = Ingredient.query.get(int(parse_number(data['ingredient_id'])))
    if not ingredient:
        return jsonify({'success': False, 'error': _('Ingredient not found')}), 404
    if any(line.ingredient_id == ingredient.id for line in recipe.ingredients):
        return jsonify({'success': False, 'error': _('This ingredient is already in the recipe')}), 400

    line = RecipeIngredient(
        ingredient=ingredient,
        amount=amount,
        ingredient_cost=ingredient.cost_per_unit * amount
    )
    recipe.ingredients.append(line)
    refresh_recipe_costs(recipe)
    log_audit("UPDATE", "Recipe", recipe.id, f"Added {amount} {ingredient.unit} of {ingredient.name}")
    db.session.commit()
    return jsonify({'success': True, 'recipe': recipe.to_dict(include_lines=True)}), 201


@recipes_blueprint.route('/api/recipes/<int:recipe_id>/ingredients/<int:line_id>', methods=['DELETE'])
def remove_recipe_ingredient(recipe_id, line_id):
    recipe = Recipe.query.get_or_404(recipe_id)
    line = RecipeIngredient.query.filter_by(id=line_id, recipe_id=recipe_id).first_or_404()
    recipe.ingredients.remove(line)
    refresh_recipe_costs(recipe)
    log_audit("UPDATE", "Recipe", recipe.id, f"Removed ingredient line {line_id}")
    db.session.commit()
    return jsonify({'success': True, 'recipe': recipe.to_dict(include_lines=True)})


@recipes_blueprint.route('/api/recipes/<int:recipe_id>/packages', methods=['POST'])
def add_recipe_package(recipe_id):
    recipe = Recipe.query.get_or_404(recipe_id)
    data = get_payload()
    try:
        require_fields(data, 'package_id')
        quantity = positive_number(data, 'quantity') if data.get('quantity') not in (None, '') else 1.0
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    package = Package.query.get(int(parse_number(data['package_id'])))
    if not package:
        return jsonify({'success': False, 'error': _('Package not found')}), 404

    line = RecipePackage(
        package=package,
        quantity=quantity,
        package_cost=package.unit_cost * quantity
    )
    recipe.packages.append(line)
    refresh_recipe_costs(recipe)
    log_audit("UPDATE", "Recipe", recipe.id, f"Added {quantity} x {package.name}")
    db.session.commit()
    return jsonify({'success': True, 'recipe': recipe.to_dict(include_lines=True)}), 201


@recipes_blueprint.route('/api/recipes/<int:recipe_id>/packages/<int:line_id>', methods=['DELETE'])
def remove_recipe_package(recipe_id, line_id):
    recipe = Recipe.query.get_or_404(recipe_id)
    line = RecipePackage.query.filter_by(id=line_id, recipe_id=recipe_id).first_or_404()
    recipe.packages.remove(line)
    refresh_recipe_costs(recipe)
    log_audit("UPDATE", "Recipe", recipe.id, f"Removed package line {line_id}")
    db.session.commit()
    return jsonify({'success': True, 'recipe': recipe.to_dict(include_lines=True)})


@recipes_blueprint.route('/api/recipes/<int:recipe_id>/recalculate', methods=['POST'])
def recalculate_recipe(recipe_id):
    """Re-read current ingredient and package prices into the recipe's stored costs"""
    recipe = Recipe.query.get_or_404(recipe_id)
    previous_cost = recipe.total_cost
    refresh_recipe_costs(recipe, reprice_lines=True)
    log_audit("RECALCULATE", "Recipe", recipe.id, f"Total cost {previous_cost:.2f} -> {recipe.total_cost:.2f}")
    db.session.commit()
    current_app.logger.info(f"Recalculated recipe {recipe.id}: {previous_cost:.2f} -> {recipe.total_cost:.2f}")
    return jsonify({'success': True, 'previous_total_cost': previous_cost, 'recipe': recipe.to_dict(include_lines=True)})
