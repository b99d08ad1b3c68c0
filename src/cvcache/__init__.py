"""In-process stale-while-revalidate cache for CV site content."""
