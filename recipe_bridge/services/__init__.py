"""Recipe-level services built on top of the storage and sandbox layers."""
