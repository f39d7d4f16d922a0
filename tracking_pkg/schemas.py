from flask_marshmallow import Marshmallow
from marshmallow import fields
from tracking_pkg.models import Customer, Order, OrderStatusHistory


ma = Marshmallow()


class CustomerSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = Customer
        load_instance = True
        fields = ('id', 'username', 'email', 'role', 'created_at')


class OrderStatusHistorySchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = OrderStatusHistory
        load_instance = True
        fields = ('code', 'note', 'at')
    at = fields.DateTime(attribute='created_at')


class OrderSchema(ma.SQLAlchemyAutoSchema):
    """Order snapshot in the camelCase shape the tracking view reads"""
    class Meta:
        model = Order
        load_instance = True
        include_fk = True
        fields = ('id', 'code', 'customer_id', 'status', 'stage', 'customer', 'statusTimeline',
                  'activities', 'notes', 'created_at', 'updated_at', 'shipped_at', 'delivered_at',
                  'cancelled_at')

    customer_id = ma.auto_field(data_key='customerId')
    created_at = ma.auto_field(data_key='createdAt')
    updated_at = ma.auto_field(data_key='updatedAt')
    shipped_at = ma.auto_field(data_key='shippedAt')
    delivered_at = ma.auto_field(data_key='deliveredAt')
    cancelled_at = ma.auto_field(data_key='cancelledAt')
    customer = fields.Method('get_customer')
    statusTimeline = fields.Method('get_status_timeline')

    def get_customer(self, obj):
        return {
            'email': obj.customer_email,
            'firstName': obj.customer_first_name or '',
            'lastName': obj.customer_last_name or '',
        }

    def get_status_timeline(self, obj):
        return order_status_histories_schema.dump(obj.status_history)


customer_schema = CustomerSchema()

order_status_histories_schema = OrderStatusHistorySchema(many=True)

order_schema = OrderSchema()
orders_schema = OrderSchema(many=True)
