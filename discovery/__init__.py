"""discovery/ - Pool index, token metadata and pool registry."""
