# mapchat/routes/__init__.py
from .maps import create_maps_blueprint

__all__ = ['create_maps_blueprint']
