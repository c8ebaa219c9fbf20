"""
Routes package for the shqip-guessr API
Blueprint-based modular route organization
"""


def register_blueprints(app):
    """Register all route blueprints with the Quart app"""
    from .admin import register as register_admin
    from .round import register as register_round

    register_admin(app)
    register_round(app)
