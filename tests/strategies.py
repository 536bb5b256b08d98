"""Shared hypothesis strategies for weft property-based testing.

Provides reusable strategies for the two places where weft's behavior is
defined over whole value domains:

- **Evaluator**: arithmetic operands and operators
- **Ranging**: mappings and sequences whose iteration order is fixed

These are building blocks; individual test modules compose them.
"""

from __future__ import annotations

from hypothesis import strategies as st

from weft.expr import DIV, FLOOR, MOD, MUL, POW, SUB, SUM

# ---------------------------------------------------------------------------
# Evaluator strategies
# ---------------------------------------------------------------------------

small_ints = st.integers(min_value=-10_000, max_value=10_000)

nonzero_ints = small_ints.filter(lambda n: n != 0)

finite_floats = st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False)

numbers = st.one_of(small_ints, finite_floats)

# Operators defined for every pair of numbers (no zero divisor concerns)
total_operators = st.sampled_from([SUM, SUB, MUL])

all_operators = st.sampled_from([SUM, SUB, MUL, DIV, MOD, POW, FLOOR])

# Values that are not arithmetic: only "+" is defined for them
non_numbers = st.one_of(
    st.text(max_size=20),
    st.none(),
    st.booleans(),
)

plain_text = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)),
    max_size=50,
)

# ---------------------------------------------------------------------------
# Range strategies
# ---------------------------------------------------------------------------

int_keyed = st.dictionaries(small_ints, st.text(max_size=5), max_size=20)

str_keyed = st.dictionaries(st.text(min_size=1, max_size=8), small_ints, max_size=20)

sequences = st.lists(st.one_of(small_ints, st.text(max_size=5)), max_size=20)
