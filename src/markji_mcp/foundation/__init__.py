"""Foundation: errors, configuration, tool base, and registry."""
