from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Custom exceptions
class ValidationError(Exception):
    """Raised when submitted form data breaks a catalog invariant"""
    pass


class Ingredient(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    unit = db.Column(db.String(10), nullable=False)  # 'g', 'ml' or 'un'
    brand = db.Column(db.String(100), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    supplier = db.Column(db.String(100), nullable=True)
    package_cost = db.Column(db.Float, nullable=False)
    package_amount = db.Column(db.Float, nullable=False)
    cost_per_unit = db.Column(db.Float, nullable=False, default=0.0)  # Snapshot: package_cost / package_amount
    stock = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'unit': self.unit,
            'brand': self.brand,
            'category': self.category,
            'supplier': self.supplier,
            'package_cost': self.package_cost,
            'package_amount': self.package_amount,
            'cost_per_unit': self.cost_per_unit,
            'stock': self.stock
        }


class Recipe(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True)
    image_filename = db.Column(db.String(255), nullable=True)
    servings = db.Column(db.Integer, nullable=False, default=1)

    # Snapshots, refreshed whenever the recipe lines change
    total_cost = db.Column(db.Float, nullable=False, default=0.0)
    cost_per_unit = db.Column(db.Float, nullable=False, default=0.0)
    packaging_cost = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ingredients = db.relationship('RecipeIngredient', backref='recipe', lazy=True,
                                  cascade='all, delete-orphan', order_by='RecipeIngredient.id')
    packages = db.relationship('RecipePackage', backref='recipe', lazy=True,
                               cascade='all, delete-orphan', order_by='RecipePackage.id')

    def to_dict(self, include_lines=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'image_filename': self.image_filename,
            'servings': self.servings,
            'total_cost': self.total_cost,
            'cost_per_unit': self.cost_per_unit,
            'packaging_cost': self.packaging_cost
        }
        if include_lines:
            data['ingredients'] = [line.to_dict() for line in self.ingredients]
            data['packages'] = [line.to_dict() for line in self.packages]
        return data


class RecipeIngredient(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=False)
    ingredient_id = db.Column(db.Integer, db.ForeignKey('ingredient.id'), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    ingredient_cost = db.Column(db.Float, nullable=False, default=0.0)  # cost_per_unit * amount at save time
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    ingredient = db.relationship('Ingredient', backref='recipe_lines')

    __table_args__ = (db.UniqueConstraint('recipe_id', 'ingredient_id'),)

    def to_dict(self):
        return {
            'id': self.id,
            'ingredient_id': self.ingredient_id,
            'ingredient_name': self.ingredient.name if self.ingredient else None,
            'unit': self.ingredient.unit if self.ingredient else None,
            'amount': self.amount,
            'ingredient_cost': self.ingredient_cost
        }


class Package(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(50), nullable=False, default='box')
    capacity = db.Column(db.String(50), nullable=True)
    supplier = db.Column(db.String(100), nullable=True)
    unit_cost = db.Column(db.Float, nullable=False)
    stock = db.Column(db.Float, nullable=True)
    image_filename = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'capacity': self.capacity,
            'supplier': self.supplier,
            'unit_cost': self.unit_cost,
            'stock': self.stock,
            'image_filename': self.image_filename
        }


class RecipePackage(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=False)
    package_id = db.Column(db.Integer, db.ForeignKey('package.id'), nullable=False)
    quantity = db.Column(db.Float, nullable=False, default=1)
    package_cost = db.Column(db.Float, nullable=False, default=0.0)  # unit_cost * quantity at save time
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    package = db.relationship('Package', backref='recipe_lines')

    def to_dict(self):
        return {
            'id': self.id,
            'package_id': self.package_id,
            'package_name': self.package.name if self.package else None,
            'quantity': self.quantity,
            'package_cost': self.package_cost
        }


class Product(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=True)
    image_filename = db.Column(db.String(255), nullable=True)
    active = db.Column(db.Boolean, default=True, nullable=False)
    visible_in_store = db.Column(db.Boolean, default=True, nullable=False)

    # Pricing snapshot
    cost = db.Column(db.Float, nullable=False, default=0.0)
    profit_margin = db.Column(db.Float, nullable=False, default=30.0)
    price = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    recipes = db.relationship('ProductRecipe', backref='product', lazy=True, cascade='all, delete-orphan')
    packages = db.relationship('ProductPackage', backref='product', lazy=True, cascade='all, delete-orphan')

    def to_dict(self, include_lines=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'image_filename': self.image_filename,
            'active': self.active,
            'visible_in_store': self.visible_in_store,
            'cost': self.cost,
            'profit_margin': self.profit_margin,
            'price': self.price
        }
        if include_lines:
            data['recipes'] = [line.to_dict() for line in self.recipes]
            data['packages'] = [line.to_dict() for line in self.packages]
        return data


class ProductRecipe(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=False)
    quantity = db.Column(db.Float, nullable=False, default=1)

    recipe = db.relationship('Recipe')

    __table_args__ = (db.UniqueConstraint('product_id', 'recipe_id'),)

    def to_dict(self):
        return {
            'id': self.id,
            'recipe_id': self.recipe_id,
            'recipe_name': self.recipe.name if self.recipe else None,
            'cost_per_unit': self.recipe.cost_per_unit if self.recipe else 0,
            'quantity': self.quantity
        }


class ProductPackage(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    package_id = db.Column(db.Integer, db.ForeignKey('package.id'), nullable=False)
    quantity = db.Column(db.Float, nullable=False, default=1)

    package = db.relationship('Package')

    __table_args__ = (db.UniqueConstraint('product_id', 'package_id'),)

    def to_dict(self):
        return {
            'id': self.id,
            'package_id': self.package_id,
            'package_name': self.package.name if self.package else None,
            'unit_cost': self.package.unit_cost if self.package else 0,
            'quantity': self.quantity
        }


class LaborCost(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    hourly_rate = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'hourly_rate': self.hourly_rate
        }


class FixedCost(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    frequency = db.Column(db.String(10), nullable=False, default='monthly')  # 'daily', 'weekly', 'monthly', 'yearly'
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        from .pricing import monthly_amount

        return {
            'id': self.id,
            'name': self.name,
            'amount': self.amount,
            'frequency': self.frequency,
            'monthly_amount': monthly_amount(self.amount, self.frequency)
        }


class ProductPricing(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=False)
    labor_minutes = db.Column(db.Float, nullable=False, default=0)
    packaging_cost = db.Column(db.Float, nullable=False, default=0)
    profit_margin = db.Column(db.Float, nullable=False, default=0)
    yield_amount = db.Column(db.Integer, nullable=False, default=1)
    category = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Snapshot of the calculator output at save time
    recipe_cost = db.Column(db.Float, nullable=False, default=0)
    labor_cost = db.Column(db.Float, nullable=False, default=0)
    fixed_costs_share = db.Column(db.Float, nullable=False, default=0)
    total_cost = db.Column(db.Float, nullable=False, default=0)
    suggested_price = db.Column(db.Float, nullable=False, default=0)
    final_price = db.Column(db.Float, nullable=False, default=0)
    unit_cost = db.Column(db.Float, nullable=False, default=0)
    unit_price = db.Column(db.Float, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    recipe = db.relationship('Recipe', backref=db.backref('pricings', lazy=True, cascade='all, delete-orphan'))

    def to_dict(self):
        return {
            'id': self.id,
            'recipe_id': self.recipe_id,
            'recipe_name': self.recipe.name if self.recipe else None,
            'labor_minutes': self.labor_minutes,
            'packaging_cost': self.packaging_cost,
            'profit_margin': self.profit_margin,
            'yield_amount': self.yield_amount,
            'category': self.category,
            'notes': self.notes,
            'recipe_cost': self.recipe_cost,
            'labor_cost': self.labor_cost,
            'fixed_costs_share': self.fixed_costs_share,
            'total_cost': self.total_cost,
            'suggested_price': self.suggested_price,
            'final_price': self.final_price,
            'unit_cost': self.unit_cost,
            'unit_price': self.unit_price
        }


class Customer(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    document = db.Column(db.String(30), nullable=True)
    birthday = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    addresses = db.relationship('CustomerAddress', backref='customer', lazy=True,
                                cascade='all, delete-orphan', order_by='CustomerAddress.id')
    notes = db.relationship('CustomerNote', backref='customer', lazy=True,
                            cascade='all, delete-orphan', order_by='CustomerNote.id')

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'document': self.document,
            'birthday': self.birthday.strftime('%Y-%m-%d') if self.birthday else None,
            'addresses_count': len(self.addresses)
        }


class CustomerAddress(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customer.id'), nullable=False)
    street = db.Column(db.String(150), nullable=False)
    number = db.Column(db.String(20), nullable=False)
    complement = db.Column(db.String(100), nullable=True)
    neighborhood = db.Column(db.String(100), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(50), nullable=False)
    zip_code = db.Column(db.String(20), nullable=False)
    reference = db.Column(db.String(150), nullable=True)
    is_default = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'street': self.street,
            'number': self.number,
            'complement': self.complement,
            'neighborhood': self.neighborhood,
            'city': self.city,
            'state': self.state,
            'zip_code': self.zip_code,
            'reference': self.reference,
            'is_default': self.is_default
        }


class CustomerNote(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customer.id'), nullable=False)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'content': self.content,
            'created_at': self.created_at.strftime('%Y-%m-%d %H:%M:%S') if self.created_at else None
        }


class Order(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customer.id'), nullable=True)
    address_id = db.Column(db.Integer, db.ForeignKey('customer_address.id'), nullable=True)
    customer_name = db.Column(db.String(150), nullable=False)
    customer_email = db.Column(db.String(100), nullable=True)
    customer_phone = db.Column(db.String(50), nullable=True)

    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    discount_amount = db.Column(db.Float, nullable=False, default=0.0)
    additional_fees = db.Column(db.Float, nullable=False, default=0.0)
    estimated_profit = db.Column(db.Float, nullable=True)
    profit_margin = db.Column(db.Float, nullable=True)

    payment_method = db.Column(db.String(30), nullable=True)
    payment_status = db.Column(db.String(20), nullable=False, default='pending')
    status = db.Column(db.String(20), nullable=False, default='pending')
    delivery_status = db.Column(db.String(20), nullable=True)
    sale_origin = db.Column(db.String(50), nullable=True)
    sale_type = db.Column(db.String(20), nullable=False, default='manual')  # 'manual' or 'store'
    priority = db.Column(db.Boolean, default=False, nullable=False)

    seller_notes = db.Column(db.Text, nullable=True)
    internal_notes = db.Column(db.Text, nullable=True)
    delivery_date = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = db.relationship('Customer', backref='orders')
    address = db.relationship('CustomerAddress')
    items = db.relationship('OrderItem', backref='order', lazy=True, cascade='all, delete-orphan')

    def to_dict(self, include_items=False):
        data = {
            'id': self.id,
            'customer_id': self.customer_id,
            'customer_name': self.customer_name,
            'address_id': self.address_id,
            'total_amount': self.total_amount,
            'discount_amount': self.discount_amount,
            'additional_fees': self.additional_fees,
            'estimated_profit': self.estimated_profit,
            'profit_margin': self.profit_margin,
            'payment_method': self.payment_method,
            'payment_status': self.payment_status,
            'status': self.status,
            'delivery_status': self.delivery_status,
            'sale_origin': self.sale_origin,
            'sale_type': self.sale_type,
            'priority': self.priority,
            'seller_notes': self.seller_notes,
            'delivery_date': self.delivery_date.isoformat() if self.delivery_date else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('order.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    product = db.relationship('Product', backref='order_items')

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else 'Unknown',
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'subtotal': self.quantity * self.unit_price
        }


class StoreProfile(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False, default='')
    store_name = db.Column(db.String(150), nullable=False, default='')
    document = db.Column(db.String(30), nullable=True)
    whatsapp = db.Column(db.String(30), nullable=True)
    instagram = db.Column(db.String(100), nullable=True)
    telegram = db.Column(db.String(100), nullable=True)
    store_description = db.Column(db.Text, nullable=True)
    theme_color = db.Column(db.String(20), nullable=True)
    subdomain = db.Column(db.String(100), nullable=True)
    custom_domain = db.Column(db.String(150), nullable=True)
    logo_filename = db.Column(db.String(255), nullable=True)
    banner_filename = db.Column(db.String(255), nullable=True)
    is_public = db.Column(db.Boolean, default=False, nullable=False)
    allow_reviews = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'store_name': self.store_name,
            'document': self.document,
            'whatsapp': self.whatsapp,
            'instagram': self.instagram,
            'telegram': self.telegram,
            'store_description': self.store_description,
            'theme_color': self.theme_color,
            'subdomain': self.subdomain,
            'custom_domain': self.custom_domain,
            'logo_filename': self.logo_filename,
            'banner_filename': self.banner_filename,
            'is_public': self.is_public,
            'allow_reviews': self.allow_reviews
        }


class Testimonial(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(150), nullable=False)
    content = db.Column(db.Text, nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')  # 'pending', 'approved', 'rejected'
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'customer_name': self.customer_name,
            'content': self.content,
            'rating': self.rating,
            'status': self.status,
            'created_at': self.created_at.strftime('%Y-%m-%d %H:%M:%S') if self.created_at else None
        }


class AuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    action = db.Column(db.String(50), nullable=False)
    target_type = db.Column(db.String(50), nullable=False)
    target_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.Text, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': self.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
            'action': self.action,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'details': self.details
        }
