from .flooring import EPS, identity, max_flooring

__all__ = ["EPS", "identity", "max_flooring"]
