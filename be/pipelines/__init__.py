"""Pipeline stages for job-offer ingestion.

Validation, dependent-entity resolution, root upsert and association
linking are separate modules so each stage can be exercised on its own;
``ingest`` composes them inside one unit of work.
"""
