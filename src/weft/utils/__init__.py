"""Small helpers shared across weft."""
