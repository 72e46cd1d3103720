"""CLI package for Manga Catalog Sync"""
from .main import cli

__all__ = ['cli']
