"""Clients for the text-generation service that extracts job offers."""
