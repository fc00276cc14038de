"""Re-applying persisted edits to a freshly loaded graph."""
