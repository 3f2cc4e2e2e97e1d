import os
from flask import Flask, request, session, send_from_directory, jsonify
from flask_babel import Babel, gettext as _
from sqlalchemy.exc import SQLAlchemyError
from .models import db

def get_locale():
    selected_locale = request.args.get('lang', session.get('lang', 'pt_BR'))
    return selected_locale

def create_app(test_config=None):
    app = Flask(__name__)

    @app.before_request
    def before_request():
        """Capture language parameter and save to session for persistence across requests"""
        if 'lang' in request.args:
            session['lang'] = request.args.get('lang')

    # Load configurations
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///sweetsaas.db")
    app.config['SQLALCHEMY_DATABASE_URI'] = DATABASE_URL
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Secret key for session management
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    app.config['CURRENCY_SYMBOL'] = os.getenv('CURRENCY_SYMBOL', 'R$')

    app.config['BABEL_DEFAULT_LOCALE'] = 'pt_BR'
    app.config['BABEL_SUPPORTED_LOCALES'] = ['en', 'pt_BR']
    app.config['BABEL_TRANSLATION_DIRECTORIES'] = '../translations'

    # Use /images as the persistent volume for uploaded images (production)
    # or /tmp/images for local development
    if os.path.exists('/images'):
        app.config['UPLOAD_FOLDER'] = '/images'
    else:
        app.config['UPLOAD_FOLDER'] = os.getenv('UPLOAD_FOLDER', '/tmp/images')

    app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max upload size

    if test_config is not None:
        app.config.update(test_config)

    if not os.path.exists(app.config['UPLOAD_FOLDER']):
        try:
            os.makedirs(app.config['UPLOAD_FOLDER'])
        except OSError:
            app.logger.warning(f"Could not create upload folder {app.config['UPLOAD_FOLDER']}")

    Babel(app, locale_selector=get_locale)

    # Initialize database
    db.init_app(app)

    # Register blueprints
    from .routes import (ingredients_blueprint, recipes_blueprint, packaging_blueprint, products_blueprint,
                         costs_blueprint, pricing_blueprint, customers_blueprint, orders_blueprint,
                         reports_blueprint, store_blueprint)
    app.register_blueprint(ingredients_blueprint)
    app.register_blueprint(recipes_blueprint)
    app.register_blueprint(packaging_blueprint)
    app.register_blueprint(products_blueprint)
    app.register_blueprint(costs_blueprint)
    app.register_blueprint(pricing_blueprint)
    app.register_blueprint(customers_blueprint)
    app.register_blueprint(orders_blueprint)
    app.register_blueprint(reports_blueprint)
    app.register_blueprint(store_blueprint)

    @app.errorhandler(SQLAlchemyError)
    def database_error(e):
        db.session.rollback()
        app.logger.error(f"Database error on {request.path}: {e}")
        return jsonify({'success': False, 'error': _('Could not save changes')}), 500

    @app.route('/images/<path:filename>')
    def uploaded_image(filename):
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    with app.app_context():
        db.create_all()

    return app
