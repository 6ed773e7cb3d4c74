"""Application layer: editing session, status monitor, command line."""
