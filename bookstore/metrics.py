from prometheus_client import Counter

orders_total = Counter('bookstore_orders_total', 'Checkout attempts by outcome', ['status'])
revenue_total = Counter('bookstore_revenue_total', 'Total value of placed orders')
stock_restored_total = Counter('bookstore_stock_restored_total', 'Line items whose stock was put back', ['reason'])
order_transitions_total = Counter('bookstore_order_transitions_total', 'Admin order status changes', ['status'])
