"""Integration layer: owning stores and the REST collaborator client."""
