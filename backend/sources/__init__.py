"""
Dataset acquisition: resolve identifiers to URLs, fetch + decode documents,
and share one in-flight request per identifier across concurrent views.
"""
