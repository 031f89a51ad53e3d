"""Raster archive registry and catalog.

Provides ``build_archive()`` to instantiate archives by kind
(``"memory"``, ``"geotiff"``, ``"stac"``) and ``ArchiveCatalog`` to look
archives up by logical name.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from landchange.archive.base import ArchiveEntry, ArchiveStatus, RasterArchive
from landchange.exceptions import ConfigurationError

_ARCHIVE_REGISTRY: dict[str, type[RasterArchive]] = {}
_REGISTRY_INITIALIZED = False


def _init_registry() -> None:
    """Populate the archive registry on first use (lazy import)."""
    global _REGISTRY_INITIALIZED  # noqa: PLW0603
    if _REGISTRY_INITIALIZED:
        return

    from landchange.archive.geotiff import GeoTiffArchive
    from landchange.archive.memory import InMemoryArchive
    from landchange.archive.stac import StacArchive

    _ARCHIVE_REGISTRY.update(
        {
            "geotiff": GeoTiffArchive,
            "memory": InMemoryArchive,
            "stac": StacArchive,
        }
    )
    _REGISTRY_INITIALIZED = True


def get_registered_kinds() -> list[str]:
    """Return sorted list of registered archive kinds."""
    _init_registry()
    return sorted(_ARCHIVE_REGISTRY)


def build_archive(kind: str, name: str, **options: Any) -> RasterArchive:
    """Instantiate an archive of *kind* registered under logical *name*.

    Args:
        kind: Archive type (``"geotiff"``, ``"memory"`` or ``"stac"``),
            case-insensitive.
        name: Logical archive name used by queries.
        **options: Constructor arguments of the archive class
            (e.g. ``root`` for ``"geotiff"``).

    Returns:
        A ready-to-search ``RasterArchive``.

    Raises:
        ConfigurationError: If *kind* is not registered or *options*
            do not fit the archive class.

    Example:
        >>> archive = build_archive("geotiff", "NDVI", root="data/ndvi")
        >>> archive.kind
        'geotiff'
    """
    _init_registry()
    key = kind.lower()
    if key not in _ARCHIVE_REGISTRY:
        valid = ", ".join(sorted(_ARCHIVE_REGISTRY))
        raise ConfigurationError(
            what=f"Unknown archive kind: {kind!r}",
            cause=f"Valid kinds are: {valid}",
            fix=f"Use one of: {valid}",
        )
    try:
        return _ARCHIVE_REGISTRY[key](name, **options)
    except TypeError as exc:
        raise ConfigurationError(
            what=f"Invalid options for {key} archive {name!r}",
            cause=str(exc),
            fix=f"Check the options passed for archive {name!r}",
        ) from exc


class ArchiveCatalog:
    """Read-only set of raster archives addressed by logical name.

    Args:
        archives: Archives to expose; names must be unique.

    Raises:
        ConfigurationError: If two archives share a name.

    Example:
        >>> catalog = ArchiveCatalog([ndvi_archive, nbr_archive])  # doctest: +SKIP
        >>> catalog.names  # doctest: +SKIP
        ['NBR', 'NDVI']
    """

    __slots__ = ("_archives",)

    def __init__(self, archives: Iterable[RasterArchive] = ()) -> None:
        self._archives: dict[str, RasterArchive] = {}
        for archive in archives:
            if archive.name in self._archives:
                raise ConfigurationError(
                    what=f"Duplicate archive name: {archive.name!r}",
                    cause="Two archives were registered under the same name",
                    fix="Give every archive a unique logical name",
                )
            self._archives[archive.name] = archive

    @property
    def names(self) -> list[str]:
        """Sorted logical names of all archives."""
        return sorted(self._archives)

    def get(self, name: str) -> RasterArchive:
        """Return the archive registered as *name*.

        Raises:
            ConfigurationError: If no archive has that name.
        """
        try:
            return self._archives[name]
        except KeyError:
            valid = ", ".join(self.names) or "none"
            raise ConfigurationError(
                what=f"Unknown archive: {name!r}",
                cause=f"Registered archives are: {valid}",
                fix="Register the archive on the catalog or fix the archive name",
            ) from None

    def with_archive(self, archive: RasterArchive) -> ArchiveCatalog:
        """Return a new catalog that also holds *archive*."""
        return ArchiveCatalog([*self._archives.values(), archive])

    def __contains__(self, name: object) -> bool:
        return name in self._archives

    def __iter__(self) -> Iterator[RasterArchive]:
        return iter(self._archives.values())

    def __len__(self) -> int:
        return len(self._archives)

    def __repr__(self) -> str:
        return f"ArchiveCatalog(archives={self.names})"


__all__ = [
    "ArchiveCatalog",
    "ArchiveEntry",
    "ArchiveStatus",
    "RasterArchive",
    "build_archive",
    "get_registered_kinds",
]
