"""Users Web API Flask Application Package.

To use the Flask app:
    from webapi.flask_app import create_app

To use the resource controller without Flask:
    from webapi.core.users_controller import UsersController
    from webapi.core.repository import InMemoryUserRepository
"""
# Note: We don't import flask_app by default so that webapi.core stays
# usable without a Flask application context
