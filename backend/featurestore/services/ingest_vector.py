"""Vector file ingestion using ogr2ogr.

Any OGR-readable dataset (Shapefile, GeoPackage, KML, GeoJSON, ...) is
converted to a GeoJSON FeatureCollection in EPSG:4326 with ``ogr2ogr`` and
its features are added to a collection with
:func:`featurestore.services.features.create_records_from_document`.

Example:
    Ingest a shapefile into the countries collection:
        >>> from pathlib import Path
        >>> from featurestore.services import ingest_vector, store

        >>> fstore = store.open_store("./fstore")
        >>> fstore = ingest_vector.ingest_vector_file(
        ...     fstore,
        ...     "countries",
        ...     source_path=Path("countries.shp"),
        ...     work_dir=Path("/tmp/featurestore/uploads"),
        ...     index_fields=["iso"],
        ... )

    The ogr2ogr command executed:
        $ ogr2ogr -f GeoJSON /tmp/.../countries.geojson countries.shp \\
        $    -t_srs EPSG:4326 -lco RFC7946=NO
"""

from __future__ import annotations

import json
import logging
import pathlib
import tempfile
from typing import TYPE_CHECKING

from featurestore.core import exceptions
from featurestore.services import features as feature_service
from featurestore.utils import gdal_helpers

if TYPE_CHECKING:
    from collections.abc import Sequence

    from featurestore.db import models as db_models
    from featurestore.db import storage as db_storage

TARGET_SRS = "EPSG:4326"

logger = logging.getLogger(__name__)


def build_ogr2ogr_command(
    source_path: pathlib.Path,
    output_path: pathlib.Path,
) -> tuple[str, ...]:
    """Return the ogr2ogr arguments converting ``source_path`` to GeoJSON.

    RFC7946 output is disabled so ogr2ogr neither rewinds polygons nor
    truncates coordinates; both are done by the store itself. Zip archives
    (e.g. a zipped shapefile) are read through GDAL's /vsizip/ handler.
    """
    source = str(source_path)
    if source_path.suffix.lower() == ".zip":
        source = f"/vsizip/{source}"
    return (
        "ogr2ogr",
        "-f",
        "GeoJSON",
        str(output_path),
        source,
        "-t_srs",
        TARGET_SRS,
        "-lco",
        "RFC7946=NO",
    )


def ingest_vector_file(
    fstore: db_models.FeatureStore,
    collection_id: str,
    source_path: pathlib.Path,
    work_dir: pathlib.Path,
    index_fields: Sequence[str] | None = None,
    coordinate_precision: int = 6,
    storage: db_storage.DocumentStorageProtocol | None = None,
) -> db_models.FeatureStore:
    """Convert a vector dataset to GeoJSON and add its features.

    Args:
        fstore: Store holding the collection.
        collection_id: Target collection, which must already exist.
        source_path: Path to the vector file (any OGR-supported format).
        work_dir: Directory for the intermediate GeoJSON file, which is
            removed afterwards.
        index_fields: Property names to copy into the lookup entries.
        coordinate_precision: Decimal places coordinates are rounded to.
        storage: Document storage backend (local filesystem by default).

    Returns:
        The updated store.

    Raises:
        CommandError: If ogr2ogr fails.
        NotFoundError: If the collection does not exist.
        ValidationError: If the converted output is not valid GeoJSON.
    """
    work_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=work_dir) as tmp:
        output_path = pathlib.Path(tmp) / f"{source_path.stem}.geojson"
        logger.info(f"Converting {source_path} to GeoJSON")
        gdal_helpers.run_command(build_ogr2ogr_command(source_path, output_path))
        try:
            with open(output_path, encoding="utf-8") as f:
                document = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError) as e:
            raise exceptions.ValidationError(
                f"ogr2ogr produced no readable GeoJSON for {source_path}"
            ) from e

    return feature_service.create_records_from_document(
        fstore,
        collection_id,
        document,
        index_fields=index_fields,
        coordinate_precision=coordinate_precision,
        storage=storage,
    )
