"""
Routes package - contains all Flask blueprints
"""
from .auth_routes import bp as auth_bp
from .orders_routes import bp as orders_bp
from .admin_routes import bp as admin_bp
from . import health

__all__ = ['auth_bp', 'orders_bp', 'admin_bp', 'health']
