"""Foundation layer: core tool types, errors, configuration, registry."""
