"""
Built-in provider and tier catalog.

Tier-to-provider mappings are business configuration; operators can replace
the built-in catalog with a YAML file (DISPATCH_CATALOG_FILE) shaped as:

    providers:
      - id: osm
        display_name: OpenStreetMap
        tile_url_template: https://tile.openstreetmap.org/{z}/{x}/{y}.png
        ...
    tiers:
      - name: free
        allowed_provider_ids: [osm]
        rate_limit: 1000
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

import yaml

from .models import Provider, Tier

logger = logging.getLogger(__name__)


MAPBOX_STYLES = [
    "streets-v11",
    "outdoors-v11",
    "light-v10",
    "dark-v10",
    "satellite-v9",
    "satellite-streets-v11",
]


def default_providers() -> List[Provider]:
    """Providers shipped with the service."""
    return [
        Provider(
            id="osm",
            display_name="OpenStreetMap",
            requires_credential=False,
            tile_url_template="https://tile.openstreetmap.org/{z}/{x}/{y}.png",
            geocode_capability=True,
            geocode_url="https://nominatim.openstreetmap.org/search",
            styles={"standard": "standard"},
            default_style="standard",
            attribution="© OpenStreetMap contributors",
            max_zoom=19,
            tile_size=256,
            tile_format="png",
        ),
        Provider(
            id="mapbox",
            display_name="Mapbox",
            requires_credential=True,
            tile_url_template=(
                "https://api.mapbox.com/styles/v1/mapbox/{style}/tiles/{z}/{x}/{y}"
                "?access_token={credential}"
            ),
            geocode_capability=True,
            geocode_url="https://api.mapbox.com/geocoding/v5/mapbox.places",
            styles={style: style for style in MAPBOX_STYLES},
            default_style="streets-v11",
            attribution="© Mapbox © OpenStreetMap contributors",
            max_zoom=22,
            tile_size=512,
            tile_format="vector",
        ),
        Provider(
            id="google",
            display_name="Google Maps",
            requires_credential=True,
            tile_url_template=(
                "https://maps.googleapis.com/maps/vt?lyrs={style}&x={x}&y={y}&z={z}&key={credential}"
            ),
            geocode_capability=True,
            geocode_url="https://maps.googleapis.com/maps/api/geocode/json",
            styles={"roadmap": "m", "satellite": "s", "hybrid": "y", "terrain": "p"},
            default_style="roadmap",
            attribution="© Google",
            max_zoom=21,
            tile_size=256,
            tile_format="png",
        ),
    ]


def default_tiers() -> List[Tier]:
    """Subscription tiers shipped with the service."""
    return [
        Tier(
            name="free",
            display_name="Free Tier",
            allowed_provider_ids=["osm"],
            rate_limit=1000,
            features=["basic_maps", "geocoding"],
        ),
        Tier(
            name="enhanced",
            display_name="Enhanced Tier",
            allowed_provider_ids=["mapbox", "osm"],
            rate_limit=10000,
            features=["basic_maps", "geocoding", "satellite", "custom_styles"],
        ),
        Tier(
            name="premium",
            display_name="Premium Tier",
            allowed_provider_ids=["google", "mapbox", "osm"],
            rate_limit=100000,
            features=[
                "basic_maps",
                "geocoding",
                "satellite",
                "custom_styles",
                "street_view",
                "premium_data",
            ],
        ),
    ]


def load_catalog(path: Union[str, Path, None] = None) -> Tuple[List[Provider], List[Tier]]:
    """
    Load providers and tiers.

    Args:
        path: Optional YAML catalog. When None the built-in catalog is used.

    Returns:
        Tuple of (providers, tiers)

    Raises:
        FileNotFoundError: If the catalog file does not exist
        ValueError: If the file is not a mapping with providers and tiers
    """
    if path is None:
        return default_providers(), default_tiers()

    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict) or "providers" not in raw or "tiers" not in raw:
        raise ValueError(f"Catalog file {path} must define 'providers' and 'tiers'")

    providers = [Provider(**item) for item in raw["providers"]]
    tiers = [Tier(**item) for item in raw["tiers"]]
    logger.info(f"Loaded catalog from {path}: {len(providers)} providers, {len(tiers)} tiers")
    return providers, tiers
