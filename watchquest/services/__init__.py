"""Domain services operating on the shared document store."""
