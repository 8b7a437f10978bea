"""Application layer - rule engine, fix pipeline and background workers."""
