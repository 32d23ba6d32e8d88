"""Core data model: versions, manifests, lockfiles, and resolution."""
