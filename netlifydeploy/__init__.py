"""Deploy a directory of static files to Netlify."""

__version__ = "0.1.0"
