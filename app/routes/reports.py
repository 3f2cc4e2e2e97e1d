from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify
from sqlalchemy import func, and_
from ..models import db, Order, OrderItem, Product, ValidationError
from .utils import parse_date

reports_blueprint = Blueprint('reports', __name__)


def report_range():
    """
    Read the `start` / `end` query parameters as an inclusive date range.

    Defaults to the last 30 days ending today.
    """
    end = parse_date(request.args.get('end'))
    end = end.date() if end else datetime.utcnow().date()
    start = parse_date(request.args.get('start'))
    start = start.date() if start else end - timedelta(days=29)
    return start, end


def in_range(start, end):
    return and_(
        func.date(Order.created_at) >= start.isoformat(),
        func.date(Order.created_at) <= end.isoformat()
    )


def range_response(fn):
    """Run a report with the requested range, answering 400 on a malformed date"""
    try:
        start, end = report_range()
    except ValidationError as e:
        return jsonify({'success': False, 'error': str(e)}), 400
    data = fn(start, end)
    data['start'] = start.isoformat()
    data['end'] = end.isoformat()
    return jsonify(data)


def sales_metrics(start, end):
    revenue, count = db.session.query(
        func.coalesce(func.sum(Order.total_amount), 0.0),
        func.count(Order.id)
    ).filter(in_range(start, end)).one()
    return {
        'total_revenue': float(revenue),
        'orders_count': count,
        'average_ticket': float(revenue) / max(count, 1)
    }


def sales_per_day(start, end):
    day = func.date(Order.created_at)
    rows = db.session.query(
        day.label('day'),
        func.sum(Order.total_amount),
        func.count(Order.id)
    ).filter(in_range(start, end)).group_by(day).order_by(day).all()
    return {'sales': [{'date': str(d), 'amount': float(amount or 0), 'orders': count} for d, amount, count in rows]}


def top_products(start, end, limit=5):
    revenue = func.sum(OrderItem.quantity * OrderItem.unit_price)
    rows = db.session.query(
        Product.name,
        func.sum(OrderItem.quantity),
        revenue.label('revenue')
    ).join(OrderItem, OrderItem.product_id == Product.id) \
     .join(Order, OrderItem.order_id == Order.id) \
     .filter(in_range(start, end)) \
     .group_by(Product.id, Product.name) \
     .order_by(revenue.desc()) \
     .limit(limit).all()
    return {'products': [{'name': name, 'quantity': float(qty or 0), 'revenue': float(rev or 0)}
                         for name, qty, rev in rows]}


def order_status_counts(start, end):
    rows = db.session.query(Order.delivery_status, func.count(Order.id)) \
        .filter(in_range(start, end), Order.delivery_status.isnot(None)) \
        .group_by(Order.delivery_status).all()
    return {'statuses': {status: count for status, count in rows}}


# ----------------------------
# Reports
# ----------------------------
@reports_blueprint.route('/api/reports/metrics')
def metrics():
    return range_response(sales_metrics)


@reports_blueprint.route('/api/reports/sales')
def sales():
    return range_response(sales_per_day)


@reports_blueprint.route('/api/reports/top-products')
def products_ranking():
    return range_response(top_products)


@reports_blueprint.route('/api/reports/order-status')
def order_status():
    return range_response(order_status_counts)


@reports_blueprint.route('/api/reports/dashboard')
def dashboard():
    today = datetime.utcnow().date()
    month_start = today.replace(day=1)

    orders_today = Order.query.filter(in_range(today, today)).count()
    active_products = Product.query.filter_by(active=True).count()
    month_revenue = sales_metrics(month_start, today)['total_revenue']
    recent_orders = Order.query.order_by(Order.created_at.desc(), Order.id.desc()).limit(5).all()

    return jsonify({
        'orders_today': orders_today,
        'active_products': active_products,
        'month_revenue': month_revenue,
        'recent_orders': [o.to_dict() for o in recent_orders],
        'generated_at': datetime.utcnow().isoformat()
    })
