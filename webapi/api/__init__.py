"""HTTP layer: blueprints, content negotiation and error handlers."""
