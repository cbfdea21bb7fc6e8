"""Pure gateway logic: amounts, statement descriptors, source normalization."""
