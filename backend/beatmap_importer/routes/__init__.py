"""HTTP routers for the importer control surface."""
