"""TenderDesk command line interface."""
