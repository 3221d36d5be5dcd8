"""HTTP helpers shared by the API and the reference store."""
