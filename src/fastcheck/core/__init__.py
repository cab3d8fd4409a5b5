"""Core of fastcheck: session host, query engine, watch reactor."""
