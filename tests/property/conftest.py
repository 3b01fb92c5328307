# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Strategy Categories:
- JSON-safe values (RFC 8785 compatible)
- Record-like data (dicts of JSON-safe values)
- Table indexes (lists of bundle hashes)

Usage:
    from .conftest import records, bundle_hashes

    @given(record=records)
    def test_codec_round_trip(record: dict) -> None:
        ...
"""

from __future__ import annotations

from hypothesis import strategies as st

# RFC 8785 restricts integers to the IEEE 754 safe range
_SAFE_INT = 2**53 - 1

json_primitives = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-_SAFE_INT, max_value=_SAFE_INT),
    # Integral floats above 2**53 re-encode as out-of-range integers after a round trip
    st.floats(min_value=-1e15, max_value=1e15, allow_nan=False),
    st.text(max_size=40),
)

json_values = st.recursive(
    json_primitives,
    lambda children: st.one_of(
        st.lists(children, max_size=5),
        st.dictionaries(st.text(max_size=10), children, max_size=5),
    ),
    max_leaves=20,
)

records = st.dictionaries(st.text(min_size=1, max_size=10), json_values, max_size=8)

bundle_hashes = st.text(alphabet="0123456789abcdef", min_size=64, max_size=64)

indexes = st.lists(bundle_hashes, max_size=20)

# Milliseconds since epoch, 2001 to 2286
timestamps = st.integers(min_value=1_000_000_000_000, max_value=9_999_999_999_999)
