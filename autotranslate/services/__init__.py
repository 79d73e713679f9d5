"""Service layer: registry, providers, store writer, schema repair, sync."""
