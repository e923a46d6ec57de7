"""Reference decoding, path resolution and logging helpers."""
