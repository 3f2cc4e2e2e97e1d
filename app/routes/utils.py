import os
from datetime import datetime
from PIL import Image
from werkzeug.utils import secure_filename
from flask import current_app, request
from flask_babel import gettext as _
from ..models import db, AuditLog, FixedCost, LaborCost, StoreProfile, ValidationError
from ..pricing import parse_number, recipe_totals, total_monthly_fixed_costs

# Units an ingredient can be bought and measured in
units_list = ["g", "ml", "un"]

fixed_cost_frequencies = ["daily", "weekly", "monthly", "yearly"]


def log_audit(action, target_type, target_id=None, details=None):
    try:
        log = AuditLog(
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details
        )
        db.session.add(log)
    except Exception as e:
        # Audit logging must not interrupt the main operation
        current_app.logger.warning(f"Failed to log audit: {e}")


def get_payload():
    """Request body as a dict, whether it was sent as JSON or as a form"""
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    return data


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'on', 'yes')


def parse_date(value):
    """Parse 'YYYY-MM-DD' (or a full ISO timestamp) into a datetime; None when empty"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    value = str(value).strip()
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        raise ValidationError(_("Invalid date: %(value)s", value=value))


def require_fields(data, *names):
    missing = [name for name in names if data.get(name) in (None, '')]
    if missing:
        raise ValidationError(_('Missing required fields: %(fields)s', fields=', '.join(missing)))


def save_image(field_name='image'):
    """
    Store an uploaded image from request.files, resized to fit 1024x1024.

    Returns:
        The stored filename, or None when no file was sent
    """
    if field_name not in request.files:
        return None
    file = request.files[field_name]
    if not file or not file.filename:
        return None

    filename = secure_filename(file.filename)
    timestamp = datetime.now().strftime('%Y%m%d%H%M%S')
    filename = f"{timestamp}_{filename}"

    upload_folder = current_app.config['UPLOAD_FOLDER']
    if not os.path.exists(upload_folder):
        os.makedirs(upload_folder)

    filepath = os.path.join(upload_folder, filename)
    try:
        img = Image.open(file)

        # Convert to RGB if necessary (e.g. RGBA)
        if img.mode in ('RGBA', 'P'):
            img = img.convert('RGB')

        img.thumbnail((1024, 1024), Image.Resampling.LANCZOS)
        img.save(filepath, quality=85, optimize=True)
    except Exception as e:
        # Keep the original bytes if Pillow can not process the file
        current_app.logger.warning(f"Image resize failed: {e}")
        file.seek(0)
        file.save(filepath)

    return filename


def get_store_profile():
    """Return the store profile, creating an empty private one on first use"""
    profile = StoreProfile.query.first()
    if not profile:
        profile = StoreProfile(name='', store_name='')
        db.session.add(profile)
        db.session.commit()
    return profile


def get_hourly_rate():
    labor = LaborCost.query.first()
    return labor.hourly_rate if labor else 0.0


def get_monthly_fixed_costs():
    return total_monthly_fixed_costs((cost.amount, cost.frequency) for cost in FixedCost.query.all())


def refresh_recipe_costs(recipe, reprice_lines=False):
    """
    Recompute the cost snapshots stored on a recipe.

    Line snapshots (ingredient_cost / package_cost) are only re-read from the
    current ingredient and package prices when reprice_lines is True.
    """
    for line in recipe.ingredients:
        if reprice_lines and line.ingredient:
            line.ingredient_cost = line.ingredient.cost_per_unit * line.amount
    for line in recipe.packages:
        if reprice_lines and line.package:
            line.package_cost = line.package.unit_cost * line.quantity

    ingredient_lines = [(line.ingredient_cost, 1) for line in recipe.ingredients]
    recipe.total_cost, recipe.cost_per_unit = recipe_totals(ingredient_lines, recipe.servings)
    recipe.packaging_cost = sum(line.package_cost for line in recipe.packages)
    return recipe


def positive_number(data, name, allow_zero=False):
    value = parse_number(data.get(name))
    if value < 0:
        raise ValidationError(_('%(field)s can not be negative', field=name))
    if value == 0 and not allow_zero:
        raise ValidationError(_('%(field)s must be greater than zero', field=name))
    return value


def read_entries(value):
    """Line entries of a JSON body; every entry has to be an object"""
    if not isinstance(value, list) or not all(isinstance(entry, dict) for entry in value):
        raise ValidationError(_('Each line must be an object with its fields'))
    return value
