"""HTTP routes for both transfer strategies and the object library."""
