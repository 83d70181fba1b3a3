"""External providers consumed by the graph engine."""
