"""HTTP surface for the school cluster registry."""
