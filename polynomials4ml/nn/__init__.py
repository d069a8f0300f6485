from ._linear import FeatureLayout, LinearLayer


__all__ = [
    "FeatureLayout",
    "LinearLayer",
]
