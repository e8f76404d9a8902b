"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the demurrage ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. conservation.py - Double-entry accounting and collateral backing
2. atomicity.py - All-or-nothing operation semantics
3. determinism.py - Reproducible behavior
4. non_retroactivity.py - Rate changes never alter elapsed decay

These tests use hypothesis for property-based testing.
"""
