"""Password capability, bearer parsing and key authorization."""
