"""
Shared services

Stateless helpers used by both the ingestion pipeline and the village API:
- geometry: GeometryMath functions (shapely)
- population: population buckets, colours and parsing
"""
