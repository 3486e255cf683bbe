"""Netlify API client and records."""
