"""Core infrastructure: configuration, logging, errors and gateways."""
