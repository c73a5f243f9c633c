"""HTTP transport: error mapping, middleware and contracts."""
