"""Entity types, constants, diagnostics and errors."""
