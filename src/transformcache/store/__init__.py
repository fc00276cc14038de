"""Edit records, the staged ledger, the JSON fallback store and the patched-scene registry."""
