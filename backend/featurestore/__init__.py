"""Directory-backed feature store for geospatial vector data.

This package organises points, lines and polygons with their attributes
into named collections on disk. Each feature is stored as two documents
(attributes and geometry) and summarised by a lookup entry in a single
root index, so exact-match attribute queries never read every record.

- Geometries are validated, rounded to a fixed precision and rewound
  (outer rings clockwise) before they are fingerprinted and written
- Properties and geometries carry MD5 fingerprints for change detection
- Vector files in any OGR format are ingested through ogr2ogr
- A FastAPI application exposes collection, ingestion and query endpoints

See the module docstrings for details on layout and usage.
"""
