"""
Tile URL construction.

Pure functions only: no network I/O and no shared state, so identical inputs
always yield the identical URL. Caching is left to HTTP cache headers
downstream.
"""

from typing import Optional

from ..exceptions import UnsupportedStyle
from ..providers.models import Provider


def resolve_style(provider: Provider, style: Optional[str] = None) -> Optional[str]:
    """
    Map a public style token to the value the provider expects.

    Args:
        provider: Provider whose styles are checked
        style: Requested token; None selects the provider default

    Raises:
        UnsupportedStyle: If the provider does not offer the token
    """
    token = style or provider.default_style
    if token is None:
        return None
    if token not in provider.styles:
        raise UnsupportedStyle(provider.id, token, list(provider.styles))
    return provider.styles[token]


def tile_template(provider: Provider, style: Optional[str] = None) -> str:
    """Provider template with the style filled in and {z}/{x}/{y} left for the client."""
    value = resolve_style(provider, style)
    return provider.tile_url_template.replace("{style}", value or "")


def resolve_tile_url(
    provider: Provider,
    z: int,
    x: int,
    y: int,
    style: Optional[str] = None,
    credential: Optional[str] = None,
) -> str:
    """
    Build the tile URL for one tile.

    ``{credential}`` is only substituted when the template contains it; a
    missing credential leaves an empty value.

    Raises:
        UnsupportedStyle: If the provider does not offer the style token
    """
    url = tile_template(provider, style)
    url = url.replace("{z}", str(z)).replace("{x}", str(x)).replace("{y}", str(y))
    if "{credential}" in url:
        url = url.replace("{credential}", credential or "")
    return url
