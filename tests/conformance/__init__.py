"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the vault accounting system.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. price_bounds.py - Reported price stays between start and target, moves monotonically
2. liquidity.py - Available liquidity never exceeds the held reference balance
3. minting_fairness.py - Shares are minted and burned proportionally to NAV
4. atomicity.py - Failed operations leave no trace
5. determinism.py - Identical inputs produce identical state and events

These tests use hypothesis for property-based testing.
"""
