"""Store settings, the public storefront, testimonials and WhatsApp checkout."""

import io
from urllib.parse import unquote

import pytest
from PIL import Image


def open_store(client, **overrides):
    data = {'store_name': 'Doces da Ana', 'whatsapp': '+55 (11) 98888-7777', 'is_public': True}
    data.update(overrides)
    resp = client.put('/api/settings/store', json=data)
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()['store']


class TestSettings:

    def test_defaults_to_private_empty_profile(self, client):
        store = client.get('/api/settings/store').get_json()
        assert store['is_public'] is False
        assert store['allow_reviews'] is True
        assert store['store_name'] == ''

    def test_public_store_needs_name(self, client):
        resp = client.put('/api/settings/store', json={'is_public': True})
        assert resp.status_code == 400

    def test_logo_upload_is_resized(self, app, client):
        buffer = io.BytesIO()
        Image.new('RGB', (2048, 1024), 'pink').save(buffer, 'PNG')
        buffer.seek(0)
        resp = client.post('/api/settings/store', data={
            'store_name': 'Doces', 'logo': (buffer, 'logo.png')
        }, content_type='multipart/form-data')
        logo = resp.get_json()['store']['logo_filename']
        assert logo.endswith('_logo.png')

        image = client.get(f'/images/{logo}')
        assert image.status_code == 200
        assert Image.open(io.BytesIO(image.data)).size == (1024, 512)


class TestStorefront:

    def test_private_store_is_hidden(self, client):
        assert client.get('/store').status_code == 404

    def test_lists_visible_products_and_approved_testimonials(self, client, make_product):
        open_store(client)
        make_product(name='Brigadeiro', price=3, last_edited='price')
        make_product(name='Secret recipe', visible_in_store=False)
        make_product(name='Retired', active=False)

        client.post('/store/testimonials', json={'customer_name': 'Rita', 'content': 'Great!', 'rating': 5})
        client.post('/store/testimonials', json={'customer_name': 'Bia', 'content': 'Meh', 'rating': 2})
        pending = client.get('/api/testimonials?status=pending').get_json()['testimonials']
        rita = next(t for t in pending if t['customer_name'] == 'Rita')
        client.post(f"/api/testimonials/{rita['id']}/approve")

        body = client.get('/store').get_json()
        assert body['store']['store_name'] == 'Doces da Ana'
        assert 'document' not in body['store']
        assert [p['name'] for p in body['products']] == ['Brigadeiro']
        assert [t['customer_name'] for t in body['testimonials']] == ['Rita']


class TestTestimonials:

    @pytest.mark.parametrize("rating", [0, 6, 'x'])
    def test_rating_range(self, client, rating):
        open_store(client)
        resp = client.post('/store/testimonials', json={'customer_name': 'Rita', 'content': 'Hi', 'rating': rating})
        assert resp.status_code == 400

    def test_new_testimonials_are_pending(self, client):
        open_store(client)
        resp = client.post('/store/testimonials', json={'customer_name': 'Rita', 'content': 'Hi', 'rating': 4})
        assert resp.status_code == 201
        assert resp.get_json()['testimonial']['status'] == 'pending'

    def test_reviews_disabled(self, client):
        open_store(client, allow_reviews=False)
        resp = client.post('/store/testimonials', json={'customer_name': 'Rita', 'content': 'Hi', 'rating': 4})
        assert resp.status_code == 403

    def test_reject(self, client):
        open_store(client)
        testimonial = client.post('/store/testimonials', json={
            'customer_name': 'Rita', 'content': 'Hi', 'rating': 4
        }).get_json()['testimonial']
        resp = client.post(f"/api/testimonials/{testimonial['id']}/reject")
        assert resp.get_json()['testimonial']['status'] == 'rejected'
        assert client.get('/store').get_json()['testimonials'] == []


class TestCheckout:

    def test_builds_whatsapp_link(self, client, make_product):
        open_store(client)
        cake = make_product(name='Cake', price=40, last_edited='price')
        cookie = make_product(name='Cookie', price=2.5, last_edited='price')

        body = client.post('/store/checkout', json={'items': [
            {'product_id': cake['id'], 'quantity': 1},
            {'product_id': cookie['id'], 'quantity': 4},
            {'product_id': cookie['id'], 'quantity': 0},
        ]}).get_json()

        assert body['total'] == pytest.approx(50)
        assert [i['name'] for i in body['items']] == ['Cake', 'Cookie']
        assert body['whatsapp_url'].startswith('https://wa.me/5511988887777?text=')
        message = unquote(body['whatsapp_url'].split('?text=', 1)[1])
        assert '4x Cookie (R$ 2.50)' in message
        assert 'R$ 50.00' in message

    def test_empty_cart(self, client, make_product):
        open_store(client)
        product = make_product()
        resp = client.post('/store/checkout', json={'items': [{'product_id': product['id'], 'quantity': -1}]})
        assert resp.status_code == 400

    def test_hidden_product_refused(self, client, make_product):
        open_store(client)
        product = make_product(visible_in_store=False)
        resp = client.post('/store/checkout', json={'items': [{'product_id': product['id'], 'quantity': 1}]})
        assert resp.status_code == 400

    def test_store_without_whatsapp(self, client, make_product):
        open_store(client, whatsapp='')
        assert client.post('/store/checkout', json={'items': []}).status_code == 400

    def test_items_must_be_objects(self, client, make_product):
        open_store(client)
        make_product()
        resp = client.post('/store/checkout', json={'items': [3]})
        assert resp.status_code == 400
        assert resp.get_json()['success'] is False
