"""Per-session dialogue control: routing, booking collection, parsing."""
