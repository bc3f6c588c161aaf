"""Store credit ("fiados") granted to customers and the payments against it."""
