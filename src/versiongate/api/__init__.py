"""HTTP surface: persistence, the admission middleware and app-config routes."""
