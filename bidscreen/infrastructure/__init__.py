"""Infrastructure adapters: local device storage, hosted database, payments, observability."""
