"""chains/ - RPC transport, ABI bindings, signing."""
