"""
aggrows: Flatten search aggregation results into rows.

Turns the tree a search backend returns for an aggregation query (grouping
buckets, nested metrics, filters) into the flat row/column shape a query
engine hands back to its clients.

    from aggrows import flatten, decode_response

    rows = flatten(decode_response(response_body))
"""

from aggrows.core.decoding import decode_response
from aggrows.core.flatten import flatten

__version__ = "0.1.0"

__all__ = ["__version__", "decode_response", "flatten"]
