"""Catalog services"""
from .category_source import CategorySourceClient, SourceError
from .category_resolver import CategoryHierarchyResolver

__all__ = [
    'CategorySourceClient',
    'SourceError',
    'CategoryHierarchyResolver',
]
