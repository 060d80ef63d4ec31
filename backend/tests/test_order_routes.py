"""
Order and admin route tests.

Verifies:
- Customers can place, read and cancel their own orders
- Orders belonging to other users look like missing orders
- Admin routes reject customers with 403 and anonymous callers with 401
"""

from sqlalchemy.exc import OperationalError

from groceries.extensions import db
from groceries.models import Order, Product, User
from groceries.services import stock_ledger


def _stock(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).stock_quantity


class TestPlaceOrderRoute:

    def test_place_order_returns_receipt(self, client, customer_headers, bread, croissants):
        response = client.post('/api/orders', headers=customer_headers, json={
            'items': [
                {'product_id': bread.id, 'quantity': 2},
                {'product_id': croissants.id, 'quantity': 1},
            ],
            'shipping_address': '1 Camphor Tree Lane',
            'payment_method': 'card',
        })

        assert response.status_code == 201
        assert response.json['total_amount'] == '13.47'
        assert response.json['item_count'] == 2
        assert _stock(bread.id) == 148
        assert _stock(croissants.id) == 89

    def test_requires_token(self, client, bread):
        response = client.post('/api/orders', json={
            'items': [{'product_id': bread.id, 'quantity': 1}],
        })
        assert response.status_code == 401

    def test_insufficient_stock_names_product(self, client, customer_headers, last_salmon):
        response = client.post('/api/orders', headers=customer_headers, json={
            'items': [{'product_id': last_salmon.id, 'quantity': 2}],
        })

        assert response.status_code == 409
        assert 'Salmon Fillet' in response.json['error']
        assert response.json['details']['available_quantity'] == 1
        assert _stock(last_salmon.id) == 1

    def test_empty_order(self, client, customer_headers):
        response = client.post('/api/orders', headers=customer_headers, json={'items': []})
        assert response.status_code == 400
        assert response.json['error'] == 'No items in order.'

    def test_items_must_be_a_list(self, client, customer_headers):
        response = client.post('/api/orders', headers=customer_headers, json={'items': 'bread'})
        assert response.status_code == 400

    def test_store_failure_is_generic(self, client, customer_headers, bread, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("UPDATE products", {}, Exception("disk I/O error"))

        monkeypatch.setattr(stock_ledger, "decrement", broken)

        response = client.post('/api/orders', headers=customer_headers, json={
            'items': [{'product_id': bread.id, 'quantity': 1}],
        })
        assert response.status_code == 500
        assert response.json == {'error': 'Order could not be processed'}
        assert _stock(bread.id) == 150

    def test_store_timeout_is_generic(self, client, customer_headers, bread, monkeypatch):
        def locked(*args, **kwargs):
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        monkeypatch.setattr(stock_ledger, "decrement", locked)

        response = client.post('/api/orders', headers=customer_headers, json={
            'items': [{'product_id': bread.id, 'quantity': 1}],
        })
        assert response.status_code == 503
        assert response.json == {'error': 'Order could not be processed'}


class TestReadOrderRoutes:

    def _place(self, client, headers, product_id, quantity=1):
        response = client.post('/api/orders', headers=headers, json={
            'items': [{'product_id': product_id, 'quantity': quantity}],
        })
        assert response.status_code == 201
        return response.json['order_id']

    def test_owner_sees_details(self, client, customer_headers, bread):
        order_id = self._place(client, customer_headers, bread.id, 3)

        response = client.get(f'/api/orders/{order_id}', headers=customer_headers)

        assert response.status_code == 200
        order = response.json['order']
        assert order['status'] == 'pending'
        assert order['item_count'] == 1
        assert order['items'][0]['product_name'] == 'Whole Wheat Bread'
        assert order['items'][0]['subtotal'] == '10.47'

    def test_other_customer_gets_404(self, client, login, customer_headers, other_customer, bread):
        order_id = self._place(client, customer_headers, bread.id)
        mei_headers = login(other_customer.email)

        assert client.get(f'/api/orders/{order_id}', headers=mei_headers).status_code == 404
        assert client.post(f'/api/orders/{order_id}/cancel', headers=mei_headers).status_code == 404

    def test_admin_can_read_any_order(self, client, customer_headers, admin_headers, bread):
        order_id = self._place(client, customer_headers, bread.id)
        assert client.get(f'/api/orders/{order_id}', headers=admin_headers).status_code == 200

    def test_list_my_orders(self, client, customer_headers, bread):
        self._place(client, customer_headers, bread.id)
        self._place(client, customer_headers, bread.id)

        response = client.get('/api/orders', headers=customer_headers)
        assert response.status_code == 200
        assert len(response.json['orders']) == 2

    def test_cancel_then_history(self, client, customer_headers, bread):
        order_id = self._place(client, customer_headers, bread.id)

        response = client.post(f'/api/orders/{order_id}/cancel', headers=customer_headers)
        assert response.status_code == 200
        assert response.json['order']['status'] == 'cancelled'

        history = client.get(f'/api/orders/{order_id}/history', headers=customer_headers).json['history']
        assert [h['status'] for h in history] == ['cancelled']
        assert history[0]['notes'] == 'Status changed from pending to cancelled'

        # Cancelled twice is a conflict
        again = client.post(f'/api/orders/{order_id}/cancel', headers=customer_headers)
        assert again.status_code == 409


class TestAdminRoutes:

    def test_customer_is_forbidden(self, client, customer_headers, bread):
        assert client.get('/api/admin/orders', headers=customer_headers).status_code == 403
        response = client.post(f'/api/admin/products/{bread.id}/stock', headers=customer_headers,
                               json={'delta': 5, 'reason': 'sneaky'})
        assert response.status_code == 403
        assert _stock(bread.id) == 150

    def test_anonymous_is_unauthorized(self, client):
        assert client.get('/api/admin/orders').status_code == 401

    def test_status_update_and_listing(self, client, customer_headers, admin_headers, admin, bread):
        order_id = client.post('/api/orders', headers=customer_headers, json={
            'items': [{'product_id': bread.id, 'quantity': 1}],
        }).json['order_id']

        response = client.put(f'/api/admin/orders/{order_id}/status', headers=admin_headers,
                              json={'status': 'processing'})
        assert response.status_code == 200
        assert response.json['order']['status'] == 'processing'

        history = client.get(f'/api/orders/{order_id}/history', headers=admin_headers).json['history']
        assert history[-1]['user_id'] == admin.id

        listing = client.get('/api/admin/orders?status=processing', headers=admin_headers)
        assert listing.status_code == 200
        assert listing.json['total'] == 1
        assert listing.json['orders'][0]['id'] == order_id

    def test_invalid_transition(self, client, customer_headers, admin_headers, bread):
        order_id = client.post('/api/orders', headers=customer_headers, json={
            'items': [{'product_id': bread.id, 'quantity': 1}],
        }).json['order_id']

        response = client.put(f'/api/admin/orders/{order_id}/status', headers=admin_headers,
                              json={'status': 'completed'})
        assert response.status_code == 409
        db.session.expire_all()
        assert db.session.get(Order, order_id).status == 'pending'

    def test_bad_listing_params(self, client, admin_headers):
        assert client.get('/api/admin/orders?page=abc', headers=admin_headers).status_code == 400
        assert client.get('/api/admin/orders?status=shipped', headers=admin_headers).status_code == 400

    def test_stock_adjustment_and_log(self, client, admin_headers, bread):
        response = client.post(f'/api/admin/products/{bread.id}/stock', headers=admin_headers,
                               json={'delta': 25, 'reason': 'Weekly delivery'})
        assert response.status_code == 200
        assert response.json['stock_quantity'] == 175
        assert response.json['inventory_log']['event_type'] == 'restock'

        response = client.post(f'/api/admin/products/{bread.id}/stock', headers=admin_headers,
                               json={'delta': -500, 'reason': 'Shrinkage'})
        assert response.status_code == 409
        assert _stock(bread.id) == 175

        log = client.get(f'/api/admin/products/{bread.id}/inventory-log', headers=admin_headers)
        assert log.status_code == 200
        assert len(log.json['inventory_log']) == 1

    def test_stock_delta_must_be_integer(self, client, admin_headers, bread):
        response = client.post(f'/api/admin/products/{bread.id}/stock', headers=admin_headers,
                               json={'delta': '5'})
        assert response.status_code == 400

    def test_low_stock(self, client, admin_headers, bread, last_salmon):
        response = client.get('/api/admin/products/low-stock', headers=admin_headers)
        assert response.status_code == 200
        assert [p['id'] for p in response.json['products']] == [last_salmon.id]

    def test_unlock_user(self, client, login, admin_headers, customer):
        for _ in range(5):
            client.post('/api/auth/login', json={'email': customer.email, 'password': 'WrongPass1!'})

        response = client.post(f'/api/admin/users/{customer.id}/unlock', headers=admin_headers)
        assert response.status_code == 200
        assert response.json['user']['account_status'] == 'active'
        assert response.json['user']['failed_login_attempts'] == 0

        db.session.expire_all()
        assert db.session.get(User, customer.id).account_status == 'active'
        assert login(customer.email) is not None


class TestCatalogRoutes:

    def test_list_and_get(self, client, bread, croissants):
        response = client.get('/api/products')
        assert response.status_code == 200
        assert [p['name'] for p in response.json['products']] == [
            'Croissants (Pack of 4)', 'Whole Wheat Bread',
        ]

        product = client.get(f'/api/products/{bread.id}').json['product']
        assert product['price'] == '3.49'

    def test_missing_product(self, client, db_session):
        assert client.get('/api/products/999').status_code == 404


class TestHealth:

    def test_health(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json['status'] == 'healthy'
        assert response.json['checks']['database']['status'] == 'healthy'
        assert response.json['session_sweeper_running'] is False
