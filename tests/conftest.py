import pytest

from app import create_app
from app.models import db


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'UPLOAD_FOLDER': str(tmp_path / 'images'),
        'SECRET_KEY': 'test',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_ingredient(client):
    def _make(name='Flour', unit='g', package_cost=10.0, package_amount=1000, **extra):
        payload = {'name': name, 'unit': unit, 'package_cost': package_cost,
                   'package_amount': package_amount, **extra}
        resp = client.post('/api/ingredients', json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['ingredient']
    return _make


@pytest.fixture
def make_package(client):
    def _make(name='Box', unit_cost=0.5, **extra):
        resp = client.post('/api/packages', json={'name': name, 'unit_cost': unit_cost, **extra})
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['package']
    return _make


@pytest.fixture
def make_recipe(client):
    def _make(name='Brigadeiro', servings=1, lines=()):
        resp = client.post('/api/recipes', json={'name': name, 'servings': servings})
        assert resp.status_code == 201, resp.get_json()
        recipe = resp.get_json()['recipe']
        for ingredient_id, amount in lines:
            resp = client.post(f"/api/recipes/{recipe['id']}/ingredients",
                               json={'ingredient_id': ingredient_id, 'amount': amount})
            assert resp.status_code == 201, resp.get_json()
            recipe = resp.get_json()['recipe']
        return recipe
    return _make


@pytest.fixture
def make_product(client):
    def _make(name='Cake', recipes=(), packages=(), **extra):
        payload = {
            'name': name,
            'recipes': [{'recipe_id': rid, 'quantity': qty} for rid, qty in recipes],
            'packages': [{'package_id': pid, 'quantity': qty} for pid, qty in packages],
            **extra,
        }
        resp = client.post('/api/products', json=payload)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()['product']
    return _make
