"""Archive backed by a STAC API collection of annual composites.

Catalog search goes through the STAC ``/search`` endpoint with
``requests``; each band is a separate Cloud-Optimized GeoTIFF asset
that rasterio reads over HTTP, touching only the part covering the
target grid.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any

import numpy as np
import rasterio
import requests
from rasterio.errors import RasterioIOError

from landchange._types import Bounds, DateWindow
from landchange.archive.base import (
    ArchiveEntry,
    ArchiveStatus,
    RasterArchive,
    filter_entries,
    warp_dataset,
)
from landchange.exceptions import ArchiveError, SchemaMismatchError
from landchange.grid import Grid
from landchange.period import as_utc
from landchange.raster import Raster

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Timeout and retry constants
# ---------------------------------------------------------------------------

_DEFAULT_TIMEOUT = 30  # seconds for connection/request timeout
_STATUS_TIMEOUT = 10  # shorter timeout for status checks

_MAX_RETRIES = 3
_INITIAL_BACKOFF = 1.0  # seconds
_MAX_BACKOFF = 60.0  # seconds
_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 408})
_SUCCESS_STATUS_CODES = frozenset({200})

_DEFAULT_LIMIT = 100
_MAX_PAGES = 50

# GDAL options for remote COG reads.
_GDAL_ENV: dict[str, str] = {
    "GDAL_DISABLE_READDIR_ON_OPEN": "EMPTY_DIR",
    "CPL_VSIL_CURL_ALLOWED_EXTENSIONS": ".tif,.tiff",
}


def _format_datetime(value: datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_datetime(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def _geometry_bounds(geometry: Mapping[str, Any]) -> Bounds | None:
    """Return the bounding box of a GeoJSON Polygon/MultiPolygon."""
    coordinates = geometry.get("coordinates")
    if not coordinates:
        return None
    points: list[Sequence[float]] = []
    stack: list[Any] = [coordinates]
    while stack:
        item = stack.pop()
        if item and isinstance(item[0], (int, float)):
            points.append(item)
        else:
            stack.extend(item)
    if not points:
        return None
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return (min(xs), min(ys), max(xs), max(ys))


class StacArchive(RasterArchive):
    """Raster archive served by a STAC API.

    Args:
        name: Logical archive name used by queries.
        url: STAC API root (e.g. ``"https://example.com/stac/v1"``).
        collection: STAC collection id holding the composites.
        band_assets: Mapping of band name to STAC asset key
            (e.g. ``{"NDVI": "ndvi"}``).
        limit: Page size for catalog searches.
        session: Optional ``requests.Session`` to reuse.
        resampling: Resampling used to align assets with the target grid.

    Example:
        >>> archive = StacArchive(
        ...     "NDVI",
        ...     url="https://example.com/stac/v1",
        ...     collection="annual-ndvi",
        ...     band_assets={"NDVI": "ndvi"},
        ... )
        >>> archive.kind
        'stac'
    """

    _kind = "stac"

    def __init__(
        self,
        name: str,
        url: str,
        collection: str,
        band_assets: Mapping[str, str],
        limit: int = _DEFAULT_LIMIT,
        session: requests.Session | None = None,
        resampling: str = "bilinear",
    ) -> None:
        super().__init__(name, resampling=resampling)
        self._url = url.rstrip("/")
        self._collection = collection
        self._band_assets = dict(band_assets)
        self._limit = limit
        self._session = session if session is not None else requests.Session()

    @property
    def search_url(self) -> str:
        """STAC item search endpoint."""
        return f"{self._url}/search"

    # ── Catalog search ───────────────────────────────────────────

    def search(self, bounds: Bounds, window: DateWindow) -> list[ArchiveEntry]:
        """Search the STAC collection for items in *bounds* and *window*.

        Follows ``next`` links until exhausted. Returns an empty list
        when no item matches; never raises on missing data.

        Raises:
            ArchiveError: If the STAC API is unreachable or returns an
                HTTP error after retries.
        """
        start, end = window
        # STAC intervals are closed; the half-open filter below trims the edge.
        body: dict[str, Any] = {
            "collections": [self._collection],
            "bbox": list(bounds),
            "datetime": (
                f"{_format_datetime(start)}/"
                f"{_format_datetime(end - timedelta(seconds=1))}"
            ),
            "limit": self._limit,
        }
        logger.debug(
            "Searching STAC collection %s: bbox=%s, datetime=%s",
            self._collection,
            body["bbox"],
            body["datetime"],
        )

        entries: list[ArchiveEntry] = []
        resp = self._retry_request("post", self.search_url, json=body)
        for _ in range(_MAX_PAGES):
            page = self._decode(resp)
            for feature in page.get("features", []):
                entry = self._parse_item(feature)
                if entry is not None:
                    entries.append(entry)
            link = next(
                (lk for lk in page.get("links", []) if lk.get("rel") == "next"),
                None,
            )
            if link is None or not link.get("href"):
                break
            if str(link.get("method", "GET")).upper() == "POST":
                resp = self._retry_request(
                    "post", link["href"], json={**body, **link.get("body", {})}
                )
            else:
                resp = self._retry_request("get", link["href"])
        else:
            logger.warning(
                "STAC search for %s stopped after %d pages", self.name, _MAX_PAGES
            )

        matched = filter_entries(entries, bounds, window)
        logger.debug("Found %d STAC items for archive %s", len(matched), self.name)
        return matched

    def _decode(self, resp: requests.Response) -> dict[str, Any]:
        try:
            body: dict[str, Any] = resp.json()
        except ValueError as exc:
            raise ArchiveError(
                what=f"STAC API for archive {self.name!r} returned invalid JSON",
                cause=str(exc),
                fix="Try again; check the STAC API status if persistent",
            ) from exc
        return body

    def _parse_item(self, item: Mapping[str, Any]) -> ArchiveEntry | None:
        """Parse a STAC item into an ``ArchiveEntry``.

        Items without a datetime or without any mapped band asset are
        skipped.
        """
        properties = item.get("properties", {})
        raw_datetime = properties.get("datetime") or properties.get("start_datetime")
        if not raw_datetime:
            logger.debug("Skipping STAC item %s: no datetime", item.get("id"))
            return None

        bbox = item.get("bbox")
        if bbox and len(bbox) >= 4:
            bounds: Bounds | None = (bbox[0], bbox[1], bbox[2], bbox[3])
        else:
            bounds = _geometry_bounds(item.get("geometry") or {})
        if bounds is None:
            logger.debug("Skipping STAC item %s: no footprint", item.get("id"))
            return None

        assets = item.get("assets", {})
        hrefs = {
            band: assets[key]["href"]
            for band, key in self._band_assets.items()
            if key in assets and assets[key].get("href")
        }
        if not hrefs:
            logger.debug("Skipping STAC item %s: no mapped assets", item.get("id"))
            return None

        return ArchiveEntry(
            archive=self.name,
            entry_id=str(item.get("id", "")),
            timestamp=_parse_datetime(raw_datetime),
            bounds=bounds,
            bands=tuple(hrefs),
            assets=hrefs,
            metadata={"collection": item.get("collection", self._collection)},
        )

    # ── Pixel reads ──────────────────────────────────────────────

    def read(
        self,
        entry: ArchiveEntry,
        grid: Grid,
        bands: Sequence[str] | None = None,
    ) -> Raster:
        """Read the band assets of *entry* onto *grid*."""
        names = tuple(bands) if bands is not None else entry.bands
        arrays = []
        for name in names:
            href = entry.assets.get(name)
            if href is None:
                raise SchemaMismatchError(
                    what=f"Band {name!r} not found in STAC item {entry.entry_id}",
                    cause=f"Item provides bands: {', '.join(entry.bands) or 'none'}",
                    fix=f"Map {name!r} to an asset key in band_assets",
                )
            try:
                with rasterio.Env(**_GDAL_ENV), rasterio.open(href) as src:
                    arrays.append(warp_dataset(src, [1], grid, self._resampling)[0])
            except RasterioIOError as exc:
                raise ArchiveError(
                    what=f"Cannot read asset {name!r} of STAC item {entry.entry_id}",
                    cause=str(exc),
                    fix="Check the asset URL and network access",
                ) from exc
        logger.debug("Read STAC item %s bands %s", entry.entry_id, ", ".join(names))
        return Raster(
            data=np.stack(arrays),
            bands=names,
            timestamp=entry.timestamp,
            grid=grid,
            metadata={"stac_id": entry.entry_id},
        )

    # ── HTTP helpers ─────────────────────────────────────────────

    def _retry_request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> requests.Response:
        """Execute HTTP request with retry and exponential backoff.

        Raises:
            ArchiveError: If all retries are exhausted or the API
                returns a non-retryable error.
        """
        kwargs.setdefault("timeout", _DEFAULT_TIMEOUT)
        last_status: int = 0
        last_exc: requests.RequestException | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                resp = self._session.request(method, url, **kwargs)
            except requests.RequestException as exc:
                last_exc = exc
                if attempt < _MAX_RETRIES - 1:
                    backoff = self._compute_backoff(attempt)
                    logger.warning(
                        "STAC request failed (%s, attempt %d/%d), retrying in %.1fs...",
                        type(exc).__name__,
                        attempt + 1,
                        _MAX_RETRIES,
                        backoff,
                    )
                    time.sleep(backoff)
                continue

            last_exc = None

            if resp.status_code in _SUCCESS_STATUS_CODES:
                return resp

            last_status = resp.status_code
            if resp.status_code not in _RETRYABLE_STATUS_CODES:
                raise ArchiveError(
                    what=f"STAC request for archive {self.name!r} failed",
                    cause=f"HTTP {resp.status_code}",
                    fix="Check the STAC API URL and collection id",
                )

            if attempt < _MAX_RETRIES - 1:
                backoff = self._compute_backoff(attempt)
                logger.warning(
                    "STAC request failed (HTTP %d, attempt %d/%d), retrying in %.1fs...",
                    resp.status_code,
                    attempt + 1,
                    _MAX_RETRIES,
                    backoff,
                )
                time.sleep(backoff)

        if last_exc is not None:
            raise ArchiveError(
                what=f"STAC request for archive {self.name!r} failed after retries",
                cause=str(last_exc),
                fix="Check internet connection and try again",
            ) from last_exc

        raise ArchiveError(
            what=f"STAC request for archive {self.name!r} failed after retries",
            cause=f"HTTP {last_status} after {_MAX_RETRIES} retries",
            fix="Check the STAC API status and try again later",
        )

    @staticmethod
    def _compute_backoff(attempt: int) -> float:
        """Compute exponential backoff with jitter."""
        base_delay: float = min(_INITIAL_BACKOFF * (2**attempt), _MAX_BACKOFF)
        jitter: float = random.uniform(0, base_delay * 0.1)  # noqa: S311
        return float(base_delay + jitter)

    def check_status(self) -> ArchiveStatus:
        """Check that the STAC collection endpoint answers.

        Never raises; returns ``available=False`` with a message on any
        failure.
        """
        try:
            resp = self._session.get(
                f"{self._url}/collections/{self._collection}",
                timeout=_STATUS_TIMEOUT,
            )
        except requests.RequestException as exc:
            return ArchiveStatus(available=False, message=f"STAC API unreachable: {exc}")
        if resp.status_code in _SUCCESS_STATUS_CODES:
            return ArchiveStatus(available=True)
        return ArchiveStatus(
            available=False,
            message=f"STAC API returned HTTP {resp.status_code}",
        )
