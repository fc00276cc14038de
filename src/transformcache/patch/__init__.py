"""Binary patch files: byte-order primitives, container codec, file lookup and writing."""
