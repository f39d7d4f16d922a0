from flask_sqlalchemy import SQLAlchemy
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

STAFF_ROLES = ('admin', 'manager')


class Customer(db.Model):
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50))
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default='customer')  # customer, admin, manager
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_staff(self):
        return self.role in STAFF_ROLES

    def __repr__(self):
        return f'<Customer {self.email}>'


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), unique=True)  # Human-facing reference, e.g. ORD-1001
    # Guest orders have no customer_id and are tracked by billing email only
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=True)

    # Billing contact
    customer_email = db.Column(db.String(120), nullable=False, index=True)
    customer_first_name = db.Column(db.String(60))
    customer_last_name = db.Column(db.String(60))

    # Status & Stage
    status = db.Column(db.String(20), default='in_progress')  # pending, in_progress, completed, cancelled
    stage = db.Column(db.String(20), default='created')  # created, verified, packaging, shipped, ...

    # Legacy free-form activity log imported from older systems
    activities = db.Column(db.JSON)
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    shipped_at = db.Column(db.DateTime)
    delivered_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)

    customer = db.relationship('Customer', backref='orders')

    def is_owned_by(self, user_id):
        return self.customer_id is not None and str(self.customer_id) == str(user_id)

    def __repr__(self):
        return f'<Order {self.id} - {self.status}/{self.stage}>'


class OrderStatusHistory(db.Model):
    """Structured status timeline of an order, oldest first"""
    __tablename__ = 'order_status_history'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False)

    code = db.Column(db.String(30), nullable=False)
    note = db.Column(db.Text)

    # Who made the change
    changed_by_type = db.Column(db.String(20), nullable=False)  # 'admin', 'manager', 'customer', 'system'
    changed_by_id = db.Column(db.Integer)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    order = db.relationship(
        'Order',
        backref=db.backref(
            'status_history',
            order_by='OrderStatusHistory.id',
            cascade='all, delete-orphan',
        ),
    )

    def __repr__(self):
        return f'<OrderStatusHistory {self.order_id} -> {self.code}>'
