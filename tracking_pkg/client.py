"""
Order API Client
Thin requests-based client for the order endpoints plus the cached queries
the tracking view reads from
"""
import threading

import requests

from tracking_pkg.error_handler import FetchError
from tracking_pkg.identity import QueryState
from logger_config import tracking_logger


def unwrap(payload):
    """Strip the {ok, data} envelope some endpoints use"""
    if isinstance(payload, dict) and 'ok' in payload and 'data' in payload:
        return payload['data']
    return payload


class CachedQuery:
    """
    Last-good result of one fetch, refreshed on demand

    A failed refetch records the error but keeps the previous data. A query
    whose key is empty is skipped and never calls the fetcher.
    """

    def __init__(self, fetcher, key):
        self._fetcher = fetcher
        self.key = key
        self._lock = threading.Lock()
        self._data = None
        self._error = None
        # Pending until the first fetch completes
        self._is_loading = not self.skip

    @property
    def skip(self):
        return self.key is None or self.key == ''

    @property
    def state(self):
        with self._lock:
            return QueryState(data=self._data, is_loading=self._is_loading, error=self._error)

    def refetch(self):
        if self.skip:
            return self.state
        with self._lock:
            self._is_loading = True
        try:
            data = self._fetcher(self.key)
        except Exception as e:
            with self._lock:
                self._error = e
                self._is_loading = False
            tracking_logger.info(f"Query {self.key!r} failed: {e}")
            return self.state
        with self._lock:
            self._data = data
            self._error = None
            self._is_loading = False
        return self.state

    def invalidate(self):
        self.refetch()


class OrderApiClient:
    """
    Client for the order REST API

    Args:
        base_url: API root, e.g. https://shop.example.com/api
        token: Optional bearer token for the signed-in session
        timeout: Request timeout in seconds
        session: Optional requests.Session (tests pass a stub)
    """

    def __init__(self, base_url, token=None, timeout=10, session=None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()
        self._order_queries = {}
        self._list_queries = []

    def _headers(self):
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"
        return headers

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.exceptions.Timeout:
            tracking_logger.warning(f"{method} {path} timed out")
            raise FetchError(None, "Request timeout")
        except requests.exceptions.RequestException as e:
            tracking_logger.warning(f"{method} {path} network error: {e}")
            raise FetchError(None, "Network error")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400:
            message = None
            if isinstance(payload, dict):
                message = payload.get('error') or payload.get('message')
            raise FetchError(response.status_code, message)

        return unwrap(payload)

    # Queries

    def get_order(self, order_id):
        return self._request('GET', f"/orders/{order_id}")

    def list_orders(self, page=1, limit=20):
        return self._request('GET', '/orders/', params={'page': page, 'limit': limit})

    def track_order(self, order_id, email):
        """Public lookup by order id and billing email"""
        data = self._request('POST', '/orders/track', json={'orderId': order_id, 'email': email})
        if isinstance(data, dict) and isinstance(data.get('order'), dict):
            return data['order']
        return data

    def watch_order(self, order_id):
        """Cached private query for one order, shared by every caller"""
        key = str(order_id) if order_id else ''
        query = self._order_queries.get(key)
        if query is None:
            query = CachedQuery(self.get_order, key)
            if key:
                self._order_queries[key] = query
        return query

    def watch_orders(self, page=1, limit=20):
        query = CachedQuery(lambda key: self.list_orders(*key), (page, limit))
        self._list_queries.append(query)
        return query

    def invalidate_order(self, order_id):
        query = self._order_queries.get(str(order_id))
        if query is not None:
            query.invalidate()
        for list_query in self._list_queries:
            list_query.invalidate()

    # Mutations; each refreshes the cached snapshot of the order it touched

    def _mutate(self, order_id, method, path, **kwargs):
        data = self._request(method, path, **kwargs)
        self.invalidate_order(order_id)
        return data

    def cancel_order(self, order_id):
        return self._mutate(order_id, 'POST', f"/orders/{order_id}/cancel")

    def confirm_delivery(self, order_id):
        return self._mutate(order_id, 'POST', f"/orders/{order_id}/confirm-delivery")

    def update_order_status(self, order_id, status):
        return self._mutate(order_id, 'PUT', f"/admin/orders/{order_id}/status", json={'status': status})

    def update_order_stage(self, order_id, stage):
        return self._mutate(order_id, 'PUT', f"/admin/orders/{order_id}/stage", json={'stage': stage})

    def add_order_event(self, order_id, type_, text=None, at=None):
        body = {'type': type_}
        if text is not None:
            body['text'] = text
        if at is not None:
            body['at'] = at
        return self._mutate(order_id, 'POST', f"/admin/orders/{order_id}/events", json=body)
