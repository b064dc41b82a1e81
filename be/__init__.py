"""Backend package: DB models, ingestion pipelines, API.

This package validates extracted job offers, resolves their dependent
entities by natural key, upserts the job offer and replaces its tag
associations, all inside one transaction per message.
"""
