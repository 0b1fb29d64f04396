"""Bounded-concurrency batch URL fetcher with structured extraction and job bookkeeping."""

__version__ = "0.1.0"
