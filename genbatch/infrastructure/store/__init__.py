"""Job store adapters."""
