"""Location parsing, batching keys and proximity matching."""

from __future__ import annotations

import math

from .errors import ConfigurationError
from .models.alerts import City, Coordinates, Location

# Webhook payloads match alerts within ~10km.
MATCH_DEGREES = 0.1


def _coerce_float(raw: object, name: str) -> float:
    if isinstance(raw, bool):
        raise ConfigurationError(f"Invalid {name}: {raw!r}")
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid {name}: {raw!r}") from None
    if math.isnan(value) or math.isinf(value):
        raise ConfigurationError(f"Invalid {name}: {raw!r}")
    return value


def make_coordinates(lat: object, lon: object) -> Coordinates:
    lat_f = _coerce_float(lat, "latitude")
    lon_f = _coerce_float(lon, "longitude")
    if not -90.0 <= lat_f <= 90.0:
        raise ConfigurationError(f"Latitude out of range: {lat_f}")
    if not -180.0 <= lon_f <= 180.0:
        raise ConfigurationError(f"Longitude out of range: {lon_f}")
    return Coordinates(lat=lat_f, lon=lon_f)


def _coordinates_in(text: str) -> Coordinates | None:
    """Coordinates spelled as ``"lat,lon"`` text, or None for a place name."""
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2:
        return None
    try:
        lat = float(parts[0])
        lon = float(parts[1])
    except ValueError:
        return None
    return make_coordinates(lat, lon)


def parse_location(raw: object) -> Location:
    """Validate a ``{"city": ...}`` or ``{"lat": ..., "lon": ...}`` mapping.

    Raises:
        ConfigurationError: if the mapping carries both forms, neither, or
            malformed values.
    """
    if isinstance(raw, Coordinates):
        return raw
    if isinstance(raw, City):
        return _coordinates_in(raw.name) or raw
    if not isinstance(raw, dict):
        raise ConfigurationError("Location must be a mapping")
    city = raw.get("city")
    lat = raw.get("lat")
    lon = raw.get("lon")
    has_coords = lat is not None or lon is not None
    has_city = isinstance(city, str) and bool(city.strip())
    if has_coords and has_city:
        raise ConfigurationError("Location must have either lat/lon or city, not both")
    if has_coords:
        if lat is None or lon is None:
            raise ConfigurationError("Location needs both lat and lon")
        return make_coordinates(lat, lon)
    if has_city:
        # A "city" that is really a coordinate pair must batch as coordinates.
        return _coordinates_in(city) or City(name=city.strip())
    raise ConfigurationError("Location must have either lat/lon or city")


def parse_location_text(text: str) -> Location:
    """Parse user input: ``"37.77,-122.41"`` or a place name."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise ConfigurationError("Location is empty")
    return _coordinates_in(cleaned) or City(name=cleaned)


def location_to_dict(location: Location) -> dict[str, object]:
    if isinstance(location, Coordinates):
        return {"lat": location.lat, "lon": location.lon}
    if isinstance(location, City):
        return {"city": location.name}
    raise ConfigurationError(f"Invalid location: {location!r}")


def key_of(location: Location) -> str:
    """Batching key for a location.

    Coordinates use the exact float repr, so only bit-identical pairs share
    a key. City names are used verbatim unless they spell a coordinate pair,
    which keys as those coordinates.
    """
    if isinstance(location, City) and location.name:
        coords = _coordinates_in(location.name)
        if coords is None:
            return location.name
        location = coords
    if isinstance(location, Coordinates):
        return f"{float(location.lat)!r},{float(location.lon)!r}"
    raise ConfigurationError(f"Invalid location: {location!r}")


def parse_key(key: str) -> Location:
    """Inverse of `key_of`."""
    if not key:
        raise ConfigurationError("Empty location key")
    parts = key.split(",")
    if len(parts) == 2:
        try:
            return Coordinates(lat=float(parts[0]), lon=float(parts[1]))
        except ValueError:
            pass
    return City(name=key)


def describe(location: Location) -> str:
    if isinstance(location, Coordinates):
        return f"{location.lat:.4f},{location.lon:.4f}"
    return location.name


def locations_match(a: Location, b: Location) -> bool:
    if isinstance(a, Coordinates) and isinstance(b, Coordinates):
        return (
            abs(a.lat - b.lat) < MATCH_DEGREES and abs(a.lon - b.lon) < MATCH_DEGREES
        )
    if isinstance(a, City) and isinstance(b, City):
        return a.name.strip().lower() == b.name.strip().lower()
    return False
