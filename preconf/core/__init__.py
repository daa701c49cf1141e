"""Protocol core: configuration, errors, stake registries, commitment store, storage."""
