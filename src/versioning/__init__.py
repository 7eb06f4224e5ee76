"""IDE product types, build numbers and plugin identifier parsing."""
