"""
Backend package for the eQSL card service.

This package provides a FastAPI application that composes QSL cards,
stores them in S3-compatible object storage and serves listing, callsign
search and downloads.
"""
