"""Routes package for the translation sync service."""


def register_routes(app):
    """Register all route blueprints with the application."""
    from .webhook import webhook_bp

    app.register_blueprint(webhook_bp, url_prefix='/webhook')
