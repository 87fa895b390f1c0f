"""
Integration tests for the JSON API.
"""

import pytest


class TestAuthentication:

    def test_missing_token(self, client, catalog):
        response = client.post('/api/cart/add', json={'menuId': catalog.cupcake_id, 'quantity': 1})

        assert response.status_code == 401
        assert response.get_json()['kind'] == 'AuthenticationRequired'
        assert response.get_json()['status'] == 'error'

    def test_garbage_token(self, client):
        response = client.get('/api/cart', headers={'Authorization': 'Bearer not-a-jwt'})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid token'

    def test_expired_token(self, app, client, customer):
        from types import SimpleNamespace
        from cakeshop.services.auth_service import issue_token
        account = SimpleNamespace(id=customer.customer_id, role=customer.role, email=customer.email)
        token = issue_token(account, app.config['JWT_SECRET_KEY'], expires_in=-10)

        response = client.get('/api/cart', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 401
        assert 'expired' in response.get_json()['message']

    def test_customer_cannot_use_staff_endpoint(self, client, customer_headers):
        response = client.put('/api/custom-cakes/1/price', json={'price': '100.00'}, headers=customer_headers)

        assert response.status_code == 403
        assert response.get_json()['kind'] == 'PermissionDenied'


class TestMenuApi:

    def test_list_menu_hides_inactive(self, client, catalog):
        response = client.get('/api/menu')

        names = [item['name'] for item in response.get_json()['menu']]
        assert response.status_code == 200
        assert 'Chocolate Cake' in names
        assert 'Retired Tart' not in names

    def test_menu_item_detail(self, client, catalog):
        response = client.get(f'/api/menu/{catalog.cake_id}')
        item = response.get_json()['item']

        assert item['category'] == 'cake'
        assert [(s['sizeName'], s['price'], s['stock']) for s in item['sizes']] == [
            ('6 inch', '250.00', 5), ('8 inch', '400.00', 3)
        ]

    def test_unknown_menu_item(self, client, catalog):
        response = client.get('/api/menu/999999')

        assert response.status_code == 404
        assert response.get_json()['kind'] == 'ProductNotFound'


class TestCartApi:

    def test_add_and_view(self, client, catalog, customer_headers):
        response = client.post('/api/cart/add', json={
            'menuId': catalog.cake_id, 'quantity': 1, 'size': '6 inch'
        }, headers=customer_headers)

        assert response.status_code == 200
        assert response.get_json()['cartItem']['size'] == '6 inch'

        client.post('/api/cart/add', json={'menuId': str(catalog.cupcake_id), 'quantity': '2'},
                    headers=customer_headers)
        cart = client.get('/api/cart', headers=customer_headers).get_json()

        assert len(cart['cartItems']) == 2
        assert cart['total'] == '401.00'

    def test_add_more_than_stock(self, client, catalog, customer_headers):
        response = client.post('/api/cart/add', json={
            'menuId': catalog.cake_id, 'quantity': 4, 'size': '8 inch'
        }, headers=customer_headers)
        data = response.get_json()

        assert response.status_code == 409
        assert data['kind'] == 'InsufficientStock'
        assert data['currentStock'] == 3

    def test_add_without_size(self, client, catalog, customer_headers):
        response = client.post('/api/cart/add', json={'menuId': catalog.cake_id, 'quantity': 1},
                               headers=customer_headers)

        assert response.status_code == 400
        assert response.get_json()['kind'] == 'VariantRequired'

    @pytest.mark.parametrize('quantity', [0, -1, 'two'])
    def test_add_invalid_quantity(self, client, catalog, customer_headers, quantity):
        response = client.post('/api/cart/add', json={'menuId': catalog.cupcake_id, 'quantity': quantity},
                               headers=customer_headers)

        assert response.status_code == 400
        assert response.get_json()['kind'] == 'InvalidQuantity'

    def test_update_and_remove(self, client, catalog, customer_headers):
        added = client.post('/api/cart/add', json={'menuId': catalog.cupcake_id, 'quantity': 1},
                            headers=customer_headers).get_json()
        cart_item_id = added['cartItem']['cartItemId']

        updated = client.put('/api/cart/update', json={'cartItemId': cart_item_id, 'quantity': 4},
                             headers=customer_headers)
        assert updated.get_json()['cartItem']['quantity'] == 4

        removed = client.delete('/api/cart/remove', json={'cartItemId': cart_item_id}, headers=customer_headers)
        assert removed.status_code == 200
        assert client.get('/api/cart', headers=customer_headers).get_json()['cartItems'] == []

    def test_remove_someone_elses_item(self, client, catalog, customer_headers, other_customer_headers):
        added = client.post('/api/cart/add', json={'menuId': catalog.cupcake_id, 'quantity': 1},
                            headers=customer_headers).get_json()

        response = client.delete('/api/cart/remove', json={'cartItemId': added['cartItem']['cartItemId']},
                                 headers=other_customer_headers)

        assert response.status_code == 404
        assert response.get_json()['kind'] == 'CartItemNotFound'


class TestOrdersApi:

    def _checkout(self, client, headers, **overrides):
        body = {
            'customerInfo': {'fullName': 'Maria Santos', 'email': 'maria@example.com', 'phone': '0917'},
            'deliveryMethod': 'delivery',
            'deliveryAddress': '12 Mabini St',
            'paymentMethod': 'cash',
        }
        body.update(overrides)
        return client.post('/api/orders', json=body, headers=headers)

    def test_order_from_explicit_items(self, client, catalog, customer_headers):
        response = self._checkout(client, customer_headers, items=[
            {'menuId': catalog.cake_id, 'quantity': 1, 'size': '6 inch'},
            {'menuId': catalog.cupcake_id, 'quantity': 2},
        ])
        data = response.get_json()

        assert response.status_code == 201
        assert data['order']['totalAmount'] == '401.00'
        assert data['order']['status'] == 'pending'
        assert data['orderId'] == data['order']['orderId']

    def test_order_from_cart(self, client, catalog, customer_headers):
        client.post('/api/cart/add', json={'menuId': catalog.cupcake_id, 'quantity': 3}, headers=customer_headers)

        response = self._checkout(client, customer_headers)

        assert response.status_code == 201
        assert response.get_json()['order']['totalAmount'] == '226.50'
        assert client.get('/api/cart', headers=customer_headers).get_json()['cartItems'] == []

    def test_delivery_needs_address(self, client, catalog, customer_headers):
        response = self._checkout(client, customer_headers, deliveryAddress='',
                                  items=[{'menuId': catalog.cupcake_id, 'quantity': 1}])
        data = response.get_json()

        assert response.status_code == 422
        assert data['kind'] == 'AssemblyFailed'
        assert data['cause'] == 'DeliveryAddressRequired'

    def test_stock_changed_since_cart(self, client, session, catalog, customer_headers):
        from cakeshop.services import inventory_service
        client.post('/api/cart/add', json={'menuId': catalog.cake_id, 'quantity': 3, 'size': '8 inch'},
                    headers=customer_headers)
        inventory_service.debit(session, catalog.cake_id, 2, catalog.large_id)
        session.commit()

        response = self._checkout(client, customer_headers)
        data = response.get_json()

        assert response.status_code == 409
        assert data['cause'] == 'StockChangedDuringCheckout'
        assert data['lines'][0]['currentStock'] == 1

    def test_read_own_and_list(self, client, catalog, customer_headers, other_customer_headers):
        created = self._checkout(client, customer_headers,
                                 items=[{'menuId': catalog.cupcake_id, 'quantity': 1}]).get_json()
        order_id = created['orderId']

        assert client.get(f'/api/orders/{order_id}', headers=customer_headers).status_code == 200
        assert client.get(f'/api/orders/{order_id}', headers=other_customer_headers).status_code == 404

        mine = client.get('/api/orders/user/me', headers=customer_headers).get_json()['orders']
        theirs = client.get('/api/orders/user/me', headers=other_customer_headers).get_json()['orders']
        assert [o['orderId'] for o in mine] == [order_id]
        assert theirs == []

    def test_status_changes(self, client, catalog, customer_headers, staff_headers):
        created = self._checkout(client, customer_headers,
                                 items=[{'menuId': catalog.cupcake_id, 'quantity': 1}]).get_json()
        order_id = created['orderId']

        denied = client.patch(f'/api/orders/{order_id}/status', json={'status': 'processing'},
                              headers=customer_headers)
        assert denied.status_code == 403

        accepted = client.patch(f'/api/orders/{order_id}/status', json={'status': 'processing'},
                                headers=staff_headers)
        assert accepted.status_code == 200
        assert accepted.get_json()['order']['status'] == 'processing'

        again = client.patch(f'/api/orders/{order_id}/status', json={'status': 'processing'},
                             headers=staff_headers)
        assert again.status_code == 409
        assert again.get_json()['from'] == 'processing'

    @pytest.mark.parametrize('status', [['processing'], {'to': 'processing'}, 3, None, 'baking'])
    def test_unknown_target_status(self, client, catalog, customer_headers, staff_headers, status):
        created = self._checkout(client, customer_headers,
                                 items=[{'menuId': catalog.cupcake_id, 'quantity': 1}]).get_json()

        response = client.patch(f"/api/orders/{created['orderId']}/status", json={'status': status},
                                headers=staff_headers)

        assert response.status_code == 409
        assert response.get_json()['kind'] == 'InvalidStatusTransition'
        order = client.get(f"/api/orders/{created['orderId']}", headers=customer_headers).get_json()['order']
        assert order['status'] == 'pending'

    def test_customer_cancels_own_order(self, client, catalog, customer_headers):
        created = self._checkout(client, customer_headers,
                                 items=[{'menuId': catalog.cupcake_id, 'quantity': 1}]).get_json()

        response = client.patch(f"/api/orders/{created['orderId']}/status", json={'status': 'cancelled'},
                                headers=customer_headers)

        assert response.status_code == 200
        assert response.get_json()['order']['status'] == 'cancelled'

    def test_staff_confirms_payment(self, client, catalog, customer_headers, staff_headers):
        created = self._checkout(client, customer_headers, paymentMethod='gcash',
                                 items=[{'menuId': catalog.cupcake_id, 'quantity': 1}]).get_json()

        response = client.post(f"/api/orders/{created['orderId']}/payment", json={'paymentId': 'GC-1'},
                               headers=staff_headers)
        order = response.get_json()['order']

        assert response.status_code == 200
        assert order['paymentVerified'] is True
        assert order['paymentId'] == 'GC-1'


class TestCustomCakesApi:

    def test_design_price_and_order(self, client, customer_headers, staff_headers):
        created = client.post('/api/custom-cakes', json={
            'size': '8 inch', 'flavor': 'Mango', 'icingStyle': 'buttercream', 'customText': 'Happy Birthday'
        }, headers=customer_headers)
        assert created.status_code == 201
        cake_id = created.get_json()['customCake']['customCakeId']

        too_early = client.post(f'/api/custom-cakes/{cake_id}/order', json={
            'deliveryMethod': 'pickup', 'paymentMethod': 'cash'
        }, headers=customer_headers)
        assert too_early.status_code == 409
        assert too_early.get_json()['cause'] == 'CustomCakeNotPriced'

        priced = client.put(f'/api/custom-cakes/{cake_id}/price', json={'price': '1350.00'},
                            headers=staff_headers)
        assert priced.get_json()['customCake']['status'] == 'priced'

        ordered = client.post(f'/api/custom-cakes/{cake_id}/order', json={
            'deliveryMethod': 'pickup', 'pickupDate': '2026-12-20', 'paymentMethod': 'cash'
        }, headers=customer_headers)
        assert ordered.status_code == 201
        assert ordered.get_json()['order']['totalAmount'] == '1350.00'

        cake = client.get(f'/api/custom-cakes/{cake_id}', headers=customer_headers).get_json()['customCake']
        assert cake['status'] == 'ordered'

    def test_design_needs_required_fields(self, client, customer_headers):
        response = client.post('/api/custom-cakes', json={'size': '6 inch'}, headers=customer_headers)

        assert response.status_code == 400
        assert response.get_json()['missing'] == ['flavor', 'icingStyle']

    def test_other_customers_design_is_hidden(self, client, customer_headers, other_customer_headers):
        created = client.post('/api/custom-cakes', json={
            'size': '6 inch', 'flavor': 'Ube', 'icingStyle': 'fondant'
        }, headers=customer_headers).get_json()

        response = client.get(f"/api/custom-cakes/{created['customCake']['customCakeId']}",
                              headers=other_customer_headers)

        assert response.status_code == 404


class TestMetricsEndpoint:

    def test_metrics_exposition(self, client, catalog, customer_headers):
        client.post('/api/orders', json={
            'items': [{'menuId': catalog.cupcake_id, 'quantity': 1}],
            'deliveryMethod': 'pickup', 'paymentMethod': 'cash',
        }, headers=customer_headers)

        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'cakeshop_orders_assembled_total' in response.data
        assert b'http_requests_total' in response.data
