"""Worker runtime: logger, handler contract, registry, transport, worker and runner."""
