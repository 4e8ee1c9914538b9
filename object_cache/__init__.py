"""
Persistent object cache with a database-backed store and a per-request mirror.

This package provides a key/group addressed cache whose values survive in a
database table between requests, while each request keeps an in-process mirror
of resolved values, a memo of keys known to be absent, and hit/miss counters.
"""
