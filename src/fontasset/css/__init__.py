"""@font-face stylesheet generation."""

from .generator import UrlResolver, cdn_url_resolver, css_string, generate, relative_url_resolver

__all__ = [
    "UrlResolver",
    "cdn_url_resolver",
    "css_string",
    "generate",
    "relative_url_resolver",
]
