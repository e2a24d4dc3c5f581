"""Article and profile persistence for the Conduit blogging backend."""
