"""APNs push gateway with a co-hosted HTTP/2 relay."""

__version__ = "2.0.0"
