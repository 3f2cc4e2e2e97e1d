"""Product endpoints and the live price/margin quote."""

import pytest


@pytest.fixture
def catalog(make_ingredient, make_recipe, make_package):
    # Recipe costing 2.00 per serving and a 0.50 box
    ingredient = make_ingredient(name='Chocolate', package_cost=20, package_amount=1000)
    recipe = make_recipe(name='Truffle', servings=10, lines=[(ingredient['id'], 1000)])
    package = make_package(name='Box', unit_cost=0.5)
    return recipe, package


class TestProductPricing:

    def test_cost_from_lines_and_default_margin(self, catalog, make_product):
        recipe, package = catalog
        product = make_product(recipes=[(recipe['id'], 3)], packages=[(package['id'], 1)])
        assert product['cost'] == pytest.approx(6.5)
        assert product['profit_margin'] == 30
        assert product['price'] == pytest.approx(8.45)
        assert len(product['recipes']) == 1
        assert product['recipes'][0]['quantity'] == 3

    def test_price_is_authoritative_when_edited_last(self, catalog, make_product):
        recipe, _package = catalog
        product = make_product(recipes=[(recipe['id'], 5)], price=15, last_edited='price')
        assert product['cost'] == pytest.approx(10)
        assert product['price'] == pytest.approx(15)
        assert product['profit_margin'] == pytest.approx(50)

    def test_negative_margin_is_kept(self, catalog, make_product):
        recipe, _package = catalog
        product = make_product(recipes=[(recipe['id'], 5)], profit_margin=-20)
        assert product['profit_margin'] == -20
        assert product['price'] == pytest.approx(8)

    def test_price_below_cost_clamps_margin(self, catalog, make_product):
        recipe, _package = catalog
        product = make_product(recipes=[(recipe['id'], 5)], price=4, last_edited='price')
        assert product['profit_margin'] == 0
        assert product['price'] == 4

    def test_update_keeps_lines_when_omitted(self, client, catalog, make_product):
        recipe, package = catalog
        product = make_product(recipes=[(recipe['id'], 1)], packages=[(package['id'], 2)])
        resp = client.put(f"/api/products/{product['id']}", json={'name': 'Renamed', 'profit_margin': 100})
        body = resp.get_json()['product']
        assert body['name'] == 'Renamed'
        assert body['cost'] == pytest.approx(3)
        assert body['price'] == pytest.approx(6)
        assert len(body['packages']) == 1

    def test_update_changes_line_quantity(self, client, catalog, make_product):
        recipe, _package = catalog
        product = make_product(recipes=[(recipe['id'], 1)])
        resp = client.put(f"/api/products/{product['id']}", json={
            'name': 'Cake',
            'recipes': [{'recipe_id': recipe['id'], 'quantity': 4}],
            'packages': [],
        })
        body = resp.get_json()['product']
        assert body['cost'] == pytest.approx(8)
        assert body['recipes'][0]['quantity'] == 4

    def test_duplicate_recipe_line_refused(self, client, catalog):
        recipe, _package = catalog
        resp = client.post('/api/products', json={
            'name': 'Twice',
            'recipes': [{'recipe_id': recipe['id'], 'quantity': 1}, {'recipe_id': recipe['id'], 'quantity': 2}],
        })
        assert resp.status_code == 400

    def test_zero_quantity_refused(self, client, catalog):
        recipe, _package = catalog
        resp = client.post('/api/products', json={
            'name': 'Empty', 'recipes': [{'recipe_id': recipe['id'], 'quantity': 0}]
        })
        assert resp.status_code == 400

    def test_unknown_recipe_refused(self, client):
        resp = client.post('/api/products', json={'name': 'Ghost', 'recipes': [{'recipe_id': 42, 'quantity': 1}]})
        assert resp.status_code == 400

    @pytest.mark.parametrize("lines", [{'recipes': [3]}, {'packages': ['box']}])
    def test_lines_must_be_objects(self, client, lines):
        resp = client.post('/api/products', json={'name': 'Odd', **lines})
        assert resp.status_code == 400
        assert client.get('/api/products').get_json()['products'] == []

    def test_form_lines(self, client, catalog):
        recipe, package = catalog
        resp = client.post('/api/products', data={
            'name': 'Form cake',
            'recipe_id[]': [str(recipe['id'])],
            'recipe_id_quantity[]': ['2'],
            'package_id[]': [str(package['id'])],
            'package_id_quantity[]': ['1'],
            'profit_margin': '10',
        })
        assert resp.status_code == 201
        assert resp.get_json()['product']['price'] == pytest.approx(4.95)


class TestProductListing:

    def test_filters(self, client, make_product):
        make_product(name='Brownie', category='bakery')
        make_product(name='Bonbon', category='chocolate', active=False)
        assert len(client.get('/api/products').get_json()['products']) == 2
        bakery = client.get('/api/products?category=bakery').get_json()['products']
        assert [p['name'] for p in bakery] == ['Brownie']
        active = client.get('/api/products?active=true').get_json()['products']
        assert [p['name'] for p in active] == ['Brownie']

    def test_detail_and_missing(self, client, make_product):
        product = make_product()
        assert client.get(f"/api/products/{product['id']}").get_json()['name'] == 'Cake'
        assert client.get('/api/products/999').status_code == 404


class TestProductDeletion:

    def test_delete(self, client, make_product):
        product = make_product()
        body = client.delete(f"/api/products/{product['id']}").get_json()
        assert body['archived'] is False
        assert client.get(f"/api/products/{product['id']}").status_code == 404

    def test_sold_product_is_archived(self, client, make_product):
        product = make_product(price=10, last_edited='price')
        client.post('/api/orders', json={
            'customer_name': 'Ana',
            'payment_method': 'pix',
            'items': [{'product_id': product['id'], 'quantity': 1}],
        })
        body = client.delete(f"/api/products/{product['id']}").get_json()
        assert body['archived'] is True
        stored = client.get(f"/api/products/{product['id']}").get_json()
        assert stored['active'] is False
        assert stored['visible_in_store'] is False


class TestQuote:

    def test_quote_from_total_cost(self, client):
        resp = client.post('/api/products/quote', json={
            'total_cost': 100, 'yield_amount': 10, 'profit_margin': 30
        })
        quote = resp.get_json()['quote']
        assert quote['final_price'] == pytest.approx(130)
        assert quote['unit_price'] == pytest.approx(13)
        assert quote['profit_per_unit'] == pytest.approx(3)

    def test_quote_from_price(self, client):
        quote = client.post('/api/products/quote', json={
            'total_cost': 50, 'yield_amount': 5, 'price': 75, 'last_edited': 'price'
        }).get_json()['quote']
        assert quote['profit_margin'] == pytest.approx(50)
        assert quote['unit_cost'] == pytest.approx(10)

    def test_quote_from_lines(self, client, catalog):
        recipe, package = catalog
        quote = client.post('/api/products/quote', json={
            'recipes': [{'recipe_id': recipe['id'], 'quantity': 2}],
            'packages': [{'package_id': package['id'], 'quantity': 1}],
            'profit_margin': 0,
        }).get_json()['quote']
        assert quote['total_cost'] == pytest.approx(4.5)
        assert quote['final_price'] == pytest.approx(4.5)

    def test_quote_with_zero_cost_and_price(self, client):
        quote = client.post('/api/products/quote', json={
            'total_cost': '', 'price': 20, 'last_edited': 'price'
        }).get_json()['quote']
        assert quote['profit_margin'] == 0
        assert quote['final_price'] == 20

    def test_quote_lines_must_be_objects(self, client):
        resp = client.post('/api/products/quote', json={'recipes': [3]})
        assert resp.status_code == 400

    def test_quote_yield_from_text(self, client):
        quote = client.post('/api/products/quote', json={
            'total_cost': 30, 'yield_amount': '3', 'profit_margin': 0
        }).get_json()['quote']
        assert quote['yield_amount'] == 3
        assert quote['unit_cost'] == pytest.approx(10)
