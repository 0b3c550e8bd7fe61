"""Fachada REST. / REST façade."""

from urna.api.main import app_from_config, create_app

__all__ = ["app_from_config", "create_app"]
